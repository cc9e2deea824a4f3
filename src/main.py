"""Main FastAPI application entry point for the onboarding service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import settings
from src.fsm.recovery import OnboardingRecoveryManager
from src.fsm.store import InMemoryOnboardingStore
from src.handlers.chat import router as chat_router
from src.handlers.webhook import router as webhook_router
from src.integrations.github import GitHubClient
from src.services.onboarding_agent import OnboardingAgent
from src.utils.logger import log


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    log.info("=" * 60)
    log.info(f"Starting {settings.product_name} onboarding service")
    log.info(f"Environment: {settings.environment}")
    log.info(f"Port: {settings.port}")
    log.info(f"LLM intent fallback: {'on' if settings.llm_fallback_available else 'off'}")
    log.info("=" * 60)

    try:
        stats = await OnboardingRecoveryManager(app.state.store).backfill_fsm_states()
        log.info(f"✅ FSM state backfill complete: {stats}")
    except Exception as e:
        # Non-fatal: missing states are derived per turn.
        log.error(f"❌ FSM state backfill failed: {e}")

    yield

    log.info(f"Shutting down {settings.product_name} onboarding service")


def create_app(store=None, agent=None, collaborators=None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        store: OnboardingStore (in-memory when omitted)
        agent: OnboardingAgent (default classifier and engine when omitted)
        collaborators: Extra ToolContext fields (DAOs, token provider, registry)
    """
    app = FastAPI(
        title=f"{settings.product_name} Onboarding",
        description="Chat-driven onboarding: connect GitHub, import/generate docs, verify auto-sync",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = settings
    app.state.store = store or InMemoryOnboardingStore()
    app.state.agent = agent or OnboardingAgent()
    app.state.collaborators = {"github": GitHubClient(), **(collaborators or {})}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router, tags=["onboarding"])
    app.include_router(webhook_router, tags=["webhooks"])

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
            "llm_fallback": settings.llm_fallback_available,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
