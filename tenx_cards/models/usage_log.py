import uuid
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from tenx_cards.utils.clock import utcnow


class UsageLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    timestamp: datetime = Field(default_factory=utcnow)

    # Quem disparou a geração; o relatório diário é por usuário
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)

    # Modelo usado na geração (ex: llama-3.3-70b-versatile)
    model_id: str

    # Métricas devolvidas pelo provedor
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    time_taken_seconds: float = 0.0

    # Contexto (ex: "proposals")
    context_tag: str
