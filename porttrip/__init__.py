# porttrip/__init__.py
"""
PortTrip Concierge Package

Cruise-port travel assistant with:
- Local port knowledge base (JSON corpus)
- Keyword scoring + embedding rerank
- Optional web enrichment for time-sensitive questions
- Monthly usage plans (free / pro / unlimited) billed through Stripe
"""

__version__ = "1.0.0"

# Package structure:
# porttrip/
# ├── __init__.py           <- This file
# ├── main.py               <- FastAPI application entry
# ├── config.py             <- Configuration settings
# │
# ├── agents/               <- Request orchestration
# │   ├── concierge_agent.py     <- gate -> retrieve -> compose -> answer -> commit
# │   └── retrieval_pipeline.py  <- local passages + web snippets
# │
# ├── algorithms/           <- Ranking
# │   ├── lexical_scorer.py <- keyword prefilter
# │   └── reranker.py       <- embedding cosine rerank
# │
# ├── api/                  <- FastAPI Routers
# │   ├── chat.py           <- /api/chat
# │   ├── me.py             <- /api/me
# │   ├── ports.py          <- /api/ports
# │   ├── stripe_routes.py  <- /api/stripe/checkout, /api/stripe/webhook
# │   └── system.py         <- /health, /api/admin/reload-corpus
# │
# ├── cache/
# │   └── redis_client.py   <- Redis connection (usage commit ledger)
# │
# ├── interfaces/           <- Data stores and external services
# │   ├── corpus_store.py   <- port snippets + alias index
# │   ├── payments.py       <- Stripe REST
# │   ├── usage_store.py    <- usage records, commit ledger
# │   ├── usage_gate.py     <- quota checks and commits
# │   └── web_search.py     <- Tavily
# │
# ├── llm/
# │   ├── chat_client.py    <- OpenAI chat (buffered + streamed)
# │   ├── embeddings.py     <- OpenAI embeddings
# │   ├── prompts.py        <- persona, grounding rules, context block
# │   └── sanitizer.py      <- answer formatting cleanup
# │
# └── schemas/
#     ├── chat_schemas.py   <- Pydantic request/response models
#     └── errors.py         <- error taxonomy
