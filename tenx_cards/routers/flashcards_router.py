import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlmodel import Session

from tenx_cards.db.session import get_session
from tenx_cards.models.flashcard import FlashcardSourceType
from tenx_cards.models.user import User
from tenx_cards.schemas.flashcard_schemas import (
    BatchSaveRequest,
    BatchSaveResponse,
    FlashcardCreateRequest,
    FlashcardDeleteRequest,
    FlashcardDeleteResponse,
    FlashcardListQuery,
    FlashcardListResponse,
    FlashcardResponse,
    FlashcardUpdateRequest,
    SortParam,
)
from tenx_cards.services import flashcard_service
from tenx_cards.services.auth_service import get_current_user
from tenx_cards.services.batch_reconciler import save_batch

router = APIRouter()


@router.post("/batch", response_model=BatchSaveResponse)
def save_flashcards_batch(
    command: BatchSaveRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    """Salva as propostas aceitas e fecha a sessão de geração."""
    return save_batch(db, user.id, command)


@router.get("", response_model=FlashcardListResponse)
def list_flashcards(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    sort: SortParam = Query(default="created_at:desc"),
    source_type: List[FlashcardSourceType] = Query(default=[]),
    updated_after: Optional[datetime] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=200),
    include_deleted: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    query = FlashcardListQuery(
        page=page,
        page_size=page_size,
        sort=sort,
        source_type=source_type,
        updated_after=updated_after,
        search=search or None,
        include_deleted=include_deleted,
    )
    return flashcard_service.list_flashcards(db, user.id, query)


@router.post("", status_code=201, response_model=FlashcardResponse)
def create_flashcard(
    command: FlashcardCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    return flashcard_service.create_flashcard(db, user.id, command)


@router.get("/{flashcard_id}", response_model=FlashcardResponse)
def get_flashcard(
    flashcard_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    return flashcard_service.get_flashcard(db, user.id, flashcard_id)


@router.patch("/{flashcard_id}", response_model=FlashcardResponse)
def update_flashcard(
    flashcard_id: uuid.UUID,
    command: FlashcardUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    return flashcard_service.update_flashcard(db, user.id, flashcard_id, command)


@router.delete("/{flashcard_id}", response_model=FlashcardDeleteResponse)
def delete_flashcard(
    flashcard_id: uuid.UUID,
    command: Optional[FlashcardDeleteRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
):
    reason = command.reason if command else None
    return flashcard_service.delete_flashcard(db, user.id, flashcard_id, reason)
