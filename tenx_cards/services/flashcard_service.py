import math
import uuid
from typing import Optional

from loguru import logger
from sqlalchemy import or_
from sqlmodel import Session, col, func, select

from tenx_cards.models.flashcard import Flashcard, FlashcardSourceType
from tenx_cards.schemas.flashcard_schemas import (
    FlashcardCreateRequest,
    FlashcardDeleteResponse,
    FlashcardListQuery,
    FlashcardListResponse,
    FlashcardResponse,
    FlashcardUpdateRequest,
    PaginationResponse,
)
from tenx_cards.utils.clock import utcnow
from tenx_cards.utils.errors import ApiError

SORTABLE_FIELDS = {
    "created_at": Flashcard.created_at,
    "updated_at": Flashcard.updated_at,
}


def escape_like(text: str) -> str:
    # Busca literal: % e _ não viram curinga
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def to_response(card: Flashcard) -> FlashcardResponse:
    return FlashcardResponse.model_validate(card, from_attributes=True)


def _get_owned_card(db: Session, user_id: uuid.UUID, flashcard_id: uuid.UUID) -> Flashcard:
    statement = (
        select(Flashcard)
        .where(Flashcard.id == flashcard_id)
        .where(Flashcard.user_id == user_id)
        .where(Flashcard.deleted_at == None)  # noqa: E711
    )
    card = db.exec(statement).first()
    if card is None:
        raise ApiError("FLASHCARD_NOT_FOUND", "Flashcard not found", 404)
    return card


def list_flashcards(db: Session, user_id: uuid.UUID, query: FlashcardListQuery) -> FlashcardListResponse:
    filters = [Flashcard.user_id == user_id]

    if not query.include_deleted:
        filters.append(Flashcard.deleted_at == None)  # noqa: E711
    if query.source_type:
        filters.append(col(Flashcard.source_type).in_(query.source_type))
    if query.updated_after:
        filters.append(Flashcard.updated_at > query.updated_after)
    if query.search:
        pattern = f"%{escape_like(query.search)}%"
        filters.append(
            or_(
                col(Flashcard.front_text).ilike(pattern, escape="\\"),
                col(Flashcard.back_text).ilike(pattern, escape="\\"),
            )
        )

    total_items = db.exec(select(func.count()).select_from(Flashcard).where(*filters)).one()

    sort_field, sort_direction = query.sort.split(":")
    order = SORTABLE_FIELDS[sort_field]
    order = col(order).asc() if sort_direction == "asc" else col(order).desc()

    statement = (
        select(Flashcard)
        .where(*filters)
        .order_by(order, col(Flashcard.id))
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
    )
    cards = db.exec(statement).all()

    return FlashcardListResponse(
        data=[to_response(card) for card in cards],
        pagination=PaginationResponse(
            page=query.page,
            page_size=query.page_size,
            total_items=total_items,
            total_pages=math.ceil(total_items / query.page_size),
        ),
    )


def get_flashcard(db: Session, user_id: uuid.UUID, flashcard_id: uuid.UUID) -> FlashcardResponse:
    return to_response(_get_owned_card(db, user_id, flashcard_id))


def create_flashcard(db: Session, user_id: uuid.UUID, command: FlashcardCreateRequest) -> FlashcardResponse:
    # Este caminho só cria cards manuais; AI_* vêm do batch save
    if command.source_type != FlashcardSourceType.MANUAL:
        raise ApiError("INVALID_SOURCE_TYPE", "Manual flashcards must have MANUAL source type", 400)

    card = Flashcard(
        user_id=user_id,
        front_text=command.front_text,
        back_text=command.back_text,
        source_type=FlashcardSourceType.MANUAL,
    )
    db.add(card)
    db.commit()
    db.refresh(card)
    logger.info(f"➕ Flashcard manual {card.id} criado")
    return to_response(card)


def update_flashcard(
    db: Session, user_id: uuid.UUID, flashcard_id: uuid.UUID, command: FlashcardUpdateRequest
) -> FlashcardResponse:
    changes = command.model_dump(exclude_none=True)
    if not changes:
        raise ApiError("NO_FIELDS_TO_UPDATE", "At least one field must be provided for update", 400)

    card = _get_owned_card(db, user_id, flashcard_id)
    for field, value in changes.items():
        setattr(card, field, value)
    card.updated_at = utcnow()

    db.add(card)
    db.commit()
    db.refresh(card)
    return to_response(card)


def delete_flashcard(
    db: Session, user_id: uuid.UUID, flashcard_id: uuid.UUID, reason: Optional[str] = None
) -> FlashcardDeleteResponse:
    card = _get_owned_card(db, user_id, flashcard_id)
    card.deleted_at = utcnow()

    db.add(card)
    db.commit()
    db.refresh(card)
    logger.info(f"🗑️ Flashcard {card.id} removido (soft delete). Motivo: {reason or '-'}")
    return FlashcardDeleteResponse(id=card.id, deleted_at=card.deleted_at)
