import asyncio
from typing import Dict

from fastapi import APIRouter, Depends
from loguru import logger
from sqlmodel import Session

from tenx_cards.db.session import get_session
from tenx_cards.models.user import User
from tenx_cards.schemas.generation_schemas import (
    GenerationSessionCreateRequest,
    GenerationSessionCreateResponse,
    GenerationSessionResponse,
    ProposalResponse,
)
from tenx_cards.services.auth_service import get_current_user
from tenx_cards.services.proposal_generator import (
    GenerationError,
    GenerationErrorKind,
    GenerationResult,
    ProposalGenerator,
)
from tenx_cards.services.session_ledger import SessionLedger
from tenx_cards.services.usage_service import log_usage
from tenx_cards.utils.dependencies import get_feature_flags, get_generator
from tenx_cards.utils.errors import ApiError
from tenx_cards.utils.feature_flags import FeatureFlags

router = APIRouter()

# kind -> status HTTP devolvido ao cliente
GENERATION_ERROR_STATUS: Dict[GenerationErrorKind, int] = {
    GenerationErrorKind.CONFIGURATION_ERROR: 500,
    GenerationErrorKind.RATE_LIMIT_ERROR: 429,
    GenerationErrorKind.TIMEOUT_ERROR: 504,
    GenerationErrorKind.NETWORK_ERROR: 503,
    GenerationErrorKind.UPSTREAM_API_ERROR: 502,
    GenerationErrorKind.RESPONSE_VALIDATION_ERROR: 502,
}


def generation_error_to_api_error(error: GenerationError) -> ApiError:
    details = None
    if error.kind == GenerationErrorKind.RATE_LIMIT_ERROR and error.retry_after is not None:
        details = {"retry_after": str(error.retry_after)}
    elif error.kind == GenerationErrorKind.UPSTREAM_API_ERROR and error.upstream_status is not None:
        details = {"upstream_status": str(error.upstream_status)}
    return ApiError(error.kind.value, error.message, GENERATION_ERROR_STATUS[error.kind], details)


def require_ai_generation(flags: FeatureFlags = Depends(get_feature_flags)) -> None:
    if not flags.ai_generation:
        raise ApiError("FEATURE_DISABLED", "AI generation feature is currently disabled", 403)


def _is_duplicate(db: Session, user: User, request: GenerationSessionCreateRequest) -> bool:
    if request.client_request_id is None:
        return False
    return SessionLedger(db).find_by_request_id(user.id, request.client_request_id) is not None


def _record_session(
    db: Session, user: User, request: GenerationSessionCreateRequest, result: GenerationResult
) -> GenerationSessionResponse:
    log_usage(db, user.id, result.model, result.usage, result.time_taken, "proposals")

    ledger = SessionLedger(db)
    session = ledger.open(
        user.id,
        generated_count=len(result.proposals),
        client_request_id=request.client_request_id,
        model_identifier=result.model,
    )
    if not result.proposals:
        # Nada para revisar: fecha já, com contadores zerados
        session = ledger.close(session.id, user.id, saved_unchanged=0, saved_edited=0, rejected=0)

    return GenerationSessionResponse(
        id=session.id,
        client_request_id=session.client_request_id,
        model_identifier=session.model_identifier,
        generation_started_at=session.generation_started_at,
    )


@router.post(
    "/sessions",
    status_code=201,
    response_model=GenerationSessionCreateResponse,
    dependencies=[Depends(require_ai_generation)],
)
async def create_generation_session(
    request: GenerationSessionCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
    generator: ProposalGenerator = Depends(get_generator),
):
    # Session do SQLModel é síncrona: todo acesso ao banco roda fora do event loop

    # Chave repetida: responde 409 sem gastar chamada ao provedor
    if await asyncio.to_thread(_is_duplicate, db, user, request):
        raise ApiError("DUPLICATE_REQUEST_ID", "A session with this client_request_id already exists", 409)

    logger.info(f"🚀 Gerando propostas para {user.id} ({len(request.input_text)} caracteres)")
    try:
        result = await generator.generate(request.input_text, request.model_identifier)
    except GenerationError as e:
        raise generation_error_to_api_error(e)

    session = await asyncio.to_thread(_record_session, db, user, request, result)

    return GenerationSessionCreateResponse(
        session=session,
        proposals=[
            ProposalResponse(temporary_id=p.temporary_id, front_text=p.front_text, back_text=p.back_text)
            for p in result.proposals
        ],
    )
