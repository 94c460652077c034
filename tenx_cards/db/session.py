from typing import Iterator

from fastapi import Request
from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

# IMPORTANTE: Importe os modelos aqui para registrá-los no SQLModel
from tenx_cards.models.user import User
from tenx_cards.models.generation_session import GenerationSession
from tenx_cards.models.flashcard import Flashcard
from tenx_cards.models.usage_log import UsageLog


def create_db_engine(database_url: str) -> Engine:
    kwargs = {"echo": False}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # Banco em memória precisa de uma única conexão compartilhada
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(database_url, **kwargs)


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    logger.info("Tabelas do banco inicializadas")


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session
