"""
Concierge Service Configuration
Loads settings from environment variables
"""

import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    """Anything but 'false' (case-insensitive) switches a flag on"""
    return os.getenv(name, default).strip().lower() != "false"


class Settings:
    """Application settings loaded from environment"""

    # OpenAI Configuration (chat + embeddings)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_EMBED_MODEL: str = os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-large")
    MODEL_TEMPERATURE: float = float(os.getenv("MODEL_TEMPERATURE", "0.6"))

    # Retrieval
    MAX_LOCAL_PASSAGES: int = int(os.getenv("MAX_LOCAL_PASSAGES", "14"))
    MAX_WEB_SNIPPETS: int = int(os.getenv("MAX_WEB_SNIPPETS", "6"))
    PREFILTER_WIDTH: int = int(os.getenv("PREFILTER_WIDTH", "40"))
    ALLOW_WEB: bool = _env_flag("ALLOW_WEB", "true")
    USE_EMBEDDINGS: bool = _env_flag("USE_EMBEDDINGS", "true")
    EMBEDDING_TIMEOUT: float = float(os.getenv("EMBEDDING_TIMEOUT", "8"))

    # Web search (Tavily)
    TAVILY_API_KEY: str = os.getenv("TAVILY_API_KEY", "")
    TAVILY_URL: str = os.getenv("TAVILY_URL", "https://api.tavily.com/search")
    WEB_SEARCH_TIMEOUT: float = float(os.getenv("WEB_SEARCH_TIMEOUT", "8"))

    # Local knowledge base
    CORPUS_PATHS: str = os.getenv("CORPUS_PATHS", "data/ports.json,data/porttrip.json")

    # Stripe Configuration
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_PRICE_PRO_ID: str = os.getenv("STRIPE_PRICE_PRO_ID", "")
    STRIPE_PRICE_UNLIMITED_ID: str = os.getenv("STRIPE_PRICE_UNLIMITED_ID", "")
    STRIPE_TIMEOUT: float = float(os.getenv("STRIPE_TIMEOUT", "10"))

    # Usage plans (per calendar month, UTC)
    FREE_LIMIT: int = int(os.getenv("FREE_LIMIT", "3"))
    PRO_LIMIT: int = int(os.getenv("PRO_LIMIT", "25"))
    ALLOW_UNMETERED_FALLBACK: bool = os.getenv("ALLOW_UNMETERED_FALLBACK", "false").strip().lower() == "true"

    # Cookies
    FREE_USAGE_COOKIE: str = "pt_free_used"
    CUSTOMER_COOKIE: str = "pt_customer"
    COOKIE_SECURE: bool = _env_flag("COOKIE_SECURE", "true")
    COOKIE_MAX_AGE: int = 60 * 60 * 24 * 31

    # Redis Configuration (usage commit ledger)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    COMMIT_LEDGER_TTL: int = int(os.getenv("COMMIT_LEDGER_TTL", str(60 * 60 * 24 * 35)))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_ENV: str = os.getenv("API_ENV", "development")

    # Admin (corpus hot reload); endpoint disabled when empty
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "")

    # CORS Configuration
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def corpus_paths_list(self) -> List[str]:
        """Get knowledge base JSON paths as a list"""
        return [path.strip() for path in self.CORPUS_PATHS.split(",") if path.strip()]

    @property
    def embeddings_enabled(self) -> bool:
        """Rerank needs both the toggle and a key"""
        return self.USE_EMBEDDINGS and bool(self.OPENAI_API_KEY)

    def price_for_plan(self, plan: str) -> str:
        """
        Get Stripe Price ID for a plan

        Args:
            plan: "pro" or "unlimited"

        Returns:
            Price ID, or "" for unknown plans
        """
        return {
            "pro": self.STRIPE_PRICE_PRO_ID,
            "unlimited": self.STRIPE_PRICE_UNLIMITED_ID,
        }.get(plan, "")


# Global settings instance
settings = Settings()
