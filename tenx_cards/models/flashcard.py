import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field, Relationship

from tenx_cards.utils.clock import utcnow


class FlashcardSourceType(str, Enum):
    MANUAL = "MANUAL"
    AI_ORIGINAL = "AI_ORIGINAL"
    AI_EDITED = "AI_EDITED"


class Flashcard(SQLModel, table=True):
    __tablename__ = "flashcards"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    front_text: str = Field(max_length=500)
    back_text: str = Field(max_length=500)

    # Definido na criação, nunca alterado
    source_type: FlashcardSourceType = Field(default=FlashcardSourceType.MANUAL)

    # Proveniência: sessão de geração que produziu o card (None para MANUAL)
    ai_generation_audit_id: Optional[uuid.UUID] = Field(default=None, foreign_key="ai_generation_audit.id")
    generation_session: Optional["GenerationSession"] = Relationship(back_populates="cards")

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None
