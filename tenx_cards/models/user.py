import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field

from tenx_cards.utils.clock import utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str

    # Incrementado no logout: invalida todos os tokens emitidos antes
    token_version: int = 0

    created_at: datetime = Field(default_factory=utcnow)
