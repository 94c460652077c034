import uuid
from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tenx_cards.models.generation_session import GenerationSession
from tenx_cards.utils.clock import utcnow
from tenx_cards.utils.errors import ApiError


def session_not_found() -> ApiError:
    return ApiError("SESSION_NOT_FOUND", "AI generation session not found", 404)


def session_already_completed() -> ApiError:
    return ApiError("SESSION_ALREADY_COMPLETED", "This AI generation session has already been completed", 409)


class SessionLedger:
    """
    Um registro de auditoria por geração.
    Estados possíveis: aberto (só generated_count) ou fechado (contadores + completed_at).
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_request_id(self, user_id: uuid.UUID, client_request_id: uuid.UUID) -> Optional[GenerationSession]:
        statement = (
            select(GenerationSession)
            .where(GenerationSession.user_id == user_id)
            .where(GenerationSession.client_request_id == client_request_id)
        )
        return self.db.exec(statement).first()

    def open(
        self,
        user_id: uuid.UUID,
        generated_count: int,
        client_request_id: Optional[uuid.UUID] = None,
        model_identifier: Optional[str] = None,
    ) -> GenerationSession:
        record = GenerationSession(
            user_id=user_id,
            client_request_id=client_request_id or uuid.uuid4(),
            model_identifier=model_identifier or "unknown",
            generated_count=generated_count,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # Constraint única (user_id, client_request_id)
            self.db.rollback()
            raise ApiError("DUPLICATE_REQUEST_ID", "A session with this client_request_id already exists", 409)

        self.db.refresh(record)
        logger.info(f"📒 Sessão {record.id} aberta com {generated_count} propostas ({record.model_identifier})")
        return record

    def get_owned(self, session_id: uuid.UUID, user_id: uuid.UUID) -> GenerationSession:
        statement = (
            select(GenerationSession)
            .where(GenerationSession.id == session_id)
            .where(GenerationSession.user_id == user_id)
            .where(GenerationSession.deleted_at == None)  # noqa: E711
        )
        record = self.db.exec(statement).first()
        if record is None:
            raise session_not_found()
        return record

    def close(
        self,
        session_id: uuid.UUID,
        user_id: uuid.UUID,
        saved_unchanged: int,
        saved_edited: int,
        rejected: int,
        commit: bool = True,
    ) -> GenerationSession:
        # Update condicional: só fecha se ainda estiver aberta, nunca conta duas vezes
        statement = (
            update(GenerationSession)
            .where(GenerationSession.id == session_id)
            .where(GenerationSession.user_id == user_id)
            .where(GenerationSession.deleted_at == None)  # noqa: E711
            .where(GenerationSession.generation_completed_at == None)  # noqa: E711
            .values(
                saved_unchanged_count=saved_unchanged,
                saved_edited_count=saved_edited,
                rejected_count=rejected,
                generation_completed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.exec(statement)

        if result.rowcount == 0:
            if commit:
                self.db.rollback()
            # Descobre o motivo: inexistente/alheia ou já fechada
            self.get_owned(session_id, user_id)
            raise session_already_completed()

        if commit:
            self.db.commit()

        record = self.get_owned(session_id, user_id)
        self.db.refresh(record)
        logger.info(
            f"📕 Sessão {session_id} fechada: {saved_unchanged} sem edição, "
            f"{saved_edited} editadas, {rejected} rejeitadas"
        )
        return record
