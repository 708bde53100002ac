"""
PortTrip Concierge - FastAPI Application
Cruise-port travel assistant: local corpus retrieval, optional embedding
rerank and web enrichment, monthly usage plans billed through Stripe.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .agents.concierge_agent import ConciergeAgent
from .agents.retrieval_pipeline import RetrievalPipeline
from .api.chat import router as chat_router
from .api.me import router as me_router
from .api.ports import router as ports_router
from .api.stripe_routes import router as stripe_router
from .api.system import router as system_router
from .cache.redis_client import close_redis_client, try_get_redis_client
from .config import settings
from .interfaces.corpus_store import CorpusStore
from .interfaces.payments import StripeClient
from .interfaces.usage_gate import UsageGate
from .interfaces.usage_store import CommitLedger, SubscriptionUsageStore
from .interfaces.web_search import WebSearchClient
from .llm.chat_client import ChatClient
from .llm.embeddings import EmbeddingService
from .schemas.errors import ConciergeError

__version__ = "1.0.0"


# ============================================
# Lifespan
# ============================================

async def wire_components(state):
    """Build every collaborator once and hang it on app.state"""
    state.corpus = CorpusStore.from_paths(settings.corpus_paths_list)
    state.embedder = EmbeddingService()
    state.web_search = WebSearchClient()
    state.pipeline = RetrievalPipeline(
        state.corpus,
        embed=state.embedder.embed,
        web_search=state.web_search,
    )

    state.stripe = StripeClient()
    state.gate = UsageGate(
        SubscriptionUsageStore(state.stripe),
        CommitLedger(await try_get_redis_client()),
    )

    state.chat_client = ChatClient()
    state.agent = ConciergeAgent(state.corpus, state.pipeline, state.gate, state.chat_client)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("=" * 50)
    logger.info("Starting PortTrip Concierge")
    logger.info("=" * 50)
    logger.info(f"Environment: {settings.API_ENV}")
    logger.info(f"  Model: {settings.OPENAI_MODEL}")

    await wire_components(app.state)

    components = {
        "corpus": len(app.state.corpus.records) > 0,
        "llm": app.state.chat_client.available,
        "embeddings": app.state.pipeline.embeddings_enabled,
        "web_search": app.state.web_search.available and settings.ALLOW_WEB,
        "stripe": app.state.stripe.configured,
        "redis": app.state.gate.ledger.redis_client is not None,
    }

    ready = sum(1 for v in components.values() if v)
    logger.info(f"Components ready: {ready}/{len(components)}")
    for name, status in components.items():
        logger.info(f"  {'✓' if status else '✗'} {name}")

    yield

    await app.state.stripe.aclose()
    await close_redis_client()
    logger.info("PortTrip Concierge shutdown complete")


# ============================================
# Error handlers
# ============================================

async def concierge_error_handler(request: Request, exc: ConciergeError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body.", "code": "BAD_REQUEST"},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=ConciergeError().to_dict())


# ============================================
# FastAPI App
# ============================================

def create_app() -> FastAPI:
    """
    Build the FastAPI application

    Collaborators are wired by the lifespan; tests may set app.state
    themselves and skip it.
    """
    app = FastAPI(
        title="PortTrip Concierge",
        description="Cruise-port travel assistant with grounded answers and monthly usage plans.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ConciergeError, concierge_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(chat_router)
    app.include_router(me_router)
    app.include_router(ports_router)
    app.include_router(stripe_router)
    app.include_router(system_router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "PortTrip Concierge",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
            "endpoints": [
                "/health",
                "/api/chat",
                "/api/me",
                "/api/ports",
                "/api/stripe/checkout",
                "/api/stripe/webhook",
            ]
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "porttrip.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development",
        log_level="info"
    )
