from contextlib import asynccontextmanager
from typing import Optional

import requests
from fastapi import Depends, FastAPI
from loguru import logger
from sqlmodel import Session

from tenx_cards.db.session import create_db_engine, get_session, init_db
from tenx_cards.models.user import User
from tenx_cards.routers import auth_router, flashcards_router, generation_router
from tenx_cards.services.auth_service import get_current_user
from tenx_cards.services.proposal_generator import ProposalGenerator
from tenx_cards.services.usage_service import get_daily_usage_stats
from tenx_cards.utils.config import Settings, get_settings
from tenx_cards.utils.dependencies import get_app_settings
from tenx_cards.utils.errors import ApiError, register_error_handlers
from tenx_cards.utils.feature_flags import resolve_feature_flags
from tenx_cards.utils.groq_client import build_client


# Evento para criar tabelas ao iniciar
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Iniciando 10x-cards API (ambiente: {app.state.settings.ENV_NAME})")
    init_db(app.state.engine)
    yield
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None, generator: Optional[ProposalGenerator] = None) -> FastAPI:
    # Config e flags resolvidas uma vez só, passadas aos handlers via app.state
    settings = settings or get_settings()

    app = FastAPI(title="10x-cards API", lifespan=lifespan)
    app.state.settings = settings
    app.state.feature_flags = resolve_feature_flags(settings)
    app.state.engine = create_db_engine(settings.DATABASE_URL)
    app.state.generator = generator or ProposalGenerator(
        client=build_client(settings),
        model=settings.DEFAULT_MODEL,
        timeout=settings.GENERATION_TIMEOUT,
        max_retries=settings.GENERATION_MAX_RETRIES,
        retry_delay=settings.GENERATION_RETRY_DELAY,
    )

    register_error_handlers(app)

    app.include_router(auth_router.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(generation_router.router, prefix="/api/ai-generation", tags=["AI Generation"])
    app.include_router(flashcards_router.router, prefix="/api/flashcards", tags=["Flashcards"])

    @app.get("/")
    def read_root():
        return {"status": "10x-cards API is running 🚀"}

    @app.get("/api/usage")
    def read_usage(user: User = Depends(get_current_user), db: Session = Depends(get_session)):
        """
        Retorna o consumo de tokens e requisições do dia atual do usuário logado.
        """
        return get_daily_usage_stats(db, user.id)

    @app.get("/api/models", dependencies=[Depends(get_current_user)])
    def get_groq_models(settings: Settings = Depends(get_app_settings)):
        if not settings.GROQ_API_KEY:
            raise ApiError("CONFIGURATION_ERROR", "LLM provider API key is not configured", 500)

        headers = {
            "Authorization": f"Bearer {settings.GROQ_API_KEY}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.get(f"{settings.GROQ_API_BASE}/models", headers=headers, timeout=10)
        except requests.RequestException as e:
            logger.error(f"❌ Falha ao listar modelos: {e}")
            raise ApiError("NETWORK_ERROR", "Network request to LLM provider failed", 503)

        if not response.ok:
            raise ApiError(
                "UPSTREAM_API_ERROR",
                f"LLM provider request failed with status {response.status_code}",
                502,
                {"upstream_status": str(response.status_code)},
            )
        return response.json()

    return app


app = create_app()
