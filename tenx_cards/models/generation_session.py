import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

from tenx_cards.utils.clock import utcnow


class GenerationSession(SQLModel, table=True):
    """
    Registro de auditoria de uma geração.
    Aberto com generated_count; fechado uma única vez pelo batch save.
    """

    __tablename__ = "ai_generation_audit"
    # Idempotência: um client_request_id por usuário
    __table_args__ = (UniqueConstraint("user_id", "client_request_id", name="uq_audit_user_request"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    client_request_id: uuid.UUID

    model_identifier: str

    generated_count: int = Field(ge=0)
    saved_unchanged_count: int = 0
    saved_edited_count: int = 0
    rejected_count: int = 0

    generation_started_at: datetime = Field(default_factory=utcnow)
    generation_completed_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    cards: List["Flashcard"] = Relationship(back_populates="generation_session")

    @property
    def is_completed(self) -> bool:
        return self.generation_completed_at is not None
