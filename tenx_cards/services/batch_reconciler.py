import uuid

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from tenx_cards.models.flashcard import Flashcard, FlashcardSourceType
from tenx_cards.schemas.flashcard_schemas import (
    AuditResponse,
    BatchSaveRequest,
    BatchSaveResponse,
    OriginStatus,
)
from tenx_cards.services.session_ledger import SessionLedger, session_already_completed
from tenx_cards.utils.errors import ApiError

ORIGIN_TO_SOURCE = {
    OriginStatus.AI_ORIGINAL: FlashcardSourceType.AI_ORIGINAL,
    OriginStatus.AI_EDITED: FlashcardSourceType.AI_EDITED,
}


def save_batch(db: Session, user_id: uuid.UUID, command: BatchSaveRequest) -> BatchSaveResponse:
    """
    Persiste as propostas aceitas e fecha a sessão de auditoria.

    Regra principal: aceitas + rejeitadas == generated_count, exatamente.
    Inserção e fechamento rodam na mesma transação; qualquer falha do banco
    nesse trecho desfaz tudo e vira TRANSACTION_FAILED.
    """
    ledger = SessionLedger(db)

    # 1-2. Sessão existe, é do usuário e ainda está aberta
    audit = ledger.get_owned(command.ai_generation_audit_id, user_id)
    if audit.is_completed:
        raise session_already_completed()

    # 3. Contagem estrita
    received = len(command.cards) + command.rejected_count
    if received != audit.generated_count:
        raise ApiError(
            "INVALID_COUNTS",
            "Sum of saved and rejected cards does not match generated count",
            400,
            {"expected": str(audit.generated_count), "received": str(received)},
        )

    # 4. Contadores
    saved_unchanged = sum(1 for card in command.cards if card.origin_status == OriginStatus.AI_ORIGINAL)
    saved_edited = len(command.cards) - saved_unchanged

    # 5. Bulk insert
    cards = [
        Flashcard(
            user_id=user_id,
            front_text=card.front_text,
            back_text=card.back_text,
            source_type=ORIGIN_TO_SOURCE[card.origin_status],
            ai_generation_audit_id=audit.id,
        )
        for card in command.cards
    ]
    card_ids = [card.id for card in cards]

    try:
        db.add_all(cards)
        db.flush()
        # 6. Fecha a auditoria na mesma transação
        closed = ledger.close(
            audit.id,
            user_id,
            saved_unchanged=saved_unchanged,
            saved_edited=saved_edited,
            rejected=command.rejected_count,
            commit=False,
        )
        db.commit()
    except ApiError:
        # Outra requisição fechou a sessão entre a leitura e o update
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Falha ao salvar lote da sessão {audit.id}: {e}")
        raise ApiError("TRANSACTION_FAILED", "Failed to save flashcards", 500)

    logger.info(f"💾 {len(card_ids)} flashcards salvos da sessão {closed.id}")
    return BatchSaveResponse(
        saved_card_ids=card_ids,
        audit=AuditResponse(
            id=closed.id,
            generated_count=closed.generated_count,
            saved_unchanged_count=closed.saved_unchanged_count,
            saved_edited_count=closed.saved_edited_count,
            rejected_count=closed.rejected_count,
            generation_completed_at=closed.generation_completed_at,
        ),
    )
