import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, Field, StringConstraints

from tenx_cards.models.flashcard import FlashcardSourceType

CardText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class OriginStatus(str, Enum):
    AI_ORIGINAL = "AI_ORIGINAL"
    AI_EDITED = "AI_EDITED"


# --- Batch save (propostas aceitas) ---

class BatchCardRequest(BaseModel):
    front_text: CardText
    back_text: CardText
    origin_status: OriginStatus


class BatchSaveRequest(BaseModel):
    ai_generation_audit_id: uuid.UUID
    cards: List[BatchCardRequest] = Field(min_length=1)
    rejected_count: int = Field(ge=0)


class AuditResponse(BaseModel):
    id: uuid.UUID
    generated_count: int
    saved_unchanged_count: int
    saved_edited_count: int
    rejected_count: int
    generation_completed_at: Optional[datetime]


class BatchSaveResponse(BaseModel):
    saved_card_ids: List[uuid.UUID]
    audit: AuditResponse


# --- CRUD da coleção ---

class FlashcardResponse(BaseModel):
    id: uuid.UUID
    front_text: str
    back_text: str
    source_type: FlashcardSourceType
    ai_generation_audit_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class FlashcardCreateRequest(BaseModel):
    front_text: CardText
    back_text: CardText
    source_type: FlashcardSourceType = FlashcardSourceType.MANUAL


class FlashcardUpdateRequest(BaseModel):
    front_text: Optional[CardText] = None
    back_text: Optional[CardText] = None


class FlashcardDeleteRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class FlashcardDeleteResponse(BaseModel):
    id: uuid.UUID
    deleted_at: datetime


SortParam = Literal["created_at:asc", "created_at:desc", "updated_at:asc", "updated_at:desc"]


class FlashcardListQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    sort: SortParam = "created_at:desc"
    source_type: List[FlashcardSourceType] = Field(default_factory=list)
    updated_after: Optional[datetime] = None
    search: Optional[str] = Field(default=None, max_length=200)
    include_deleted: bool = False


class PaginationResponse(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class FlashcardListResponse(BaseModel):
    data: List[FlashcardResponse]
    pagination: PaginationResponse
