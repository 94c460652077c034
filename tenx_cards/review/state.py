import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from tenx_cards.review.api_client import ClientApiError
from tenx_cards.review.snapshot_store import SnapshotStore

SNAPSHOT_KEY = "tenx-cards:generate-session"
RECOVERY_TTL_SECONDS = 3600
SUCCESS_REDIRECT = "/my-cards"

# Mesmos limites que o servidor aplica, checados antes de qualquer request
INPUT_TEXT_MIN = 1000
INPUT_TEXT_MAX = 32768
CARD_TEXT_MAX = 500


class ViewState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    REVIEWING = "reviewing"
    SAVING = "saving"
    FAILED = "failed"
    SAVED = "saved"


class ReviewStateError(Exception):
    pass


@dataclass
class ProposalView:
    temporary_id: str
    front_text: str
    back_text: str
    is_accepted: bool = False
    is_edited: bool = False
    original_front: Optional[str] = None
    original_back: Optional[str] = None

    def to_save_card(self) -> Dict[str, str]:
        return {
            "front_text": self.front_text,
            "back_text": self.back_text,
            "origin_status": "AI_EDITED" if self.is_edited else "AI_ORIGINAL",
        }


def _card_text_errors(**fields: str) -> Dict[str, str]:
    details: Dict[str, str] = {}
    for field, value in fields.items():
        if not value:
            details[field] = "Text is required"
        elif len(value) > CARD_TEXT_MAX:
            details[field] = f"Text must be at most {CARD_TEXT_MAX} characters"
    return details


class ProposalReview:
    """
    Estado da tela de revisão de propostas (lado cliente, orientado a eventos).

    idle -> generating -> reviewing -> saving -> reviewing (falha) | saved (sucesso)
    generating -> failed; retry() volta a gerar.

    Cada mutação durante a revisão grava um snapshot em `store`, que pode ser
    oferecido para recuperação por até `recovery_ttl` segundos.
    """

    def __init__(
        self,
        api: Any,
        store: SnapshotStore,
        clock: Callable[[], float] = time.time,
        recovery_ttl: int = RECOVERY_TTL_SECONDS,
    ):
        self.api = api
        self.store = store
        self.clock = clock
        self.recovery_ttl = recovery_ttl
        self._reset_fields()

    def _reset_fields(self) -> None:
        self.view_state = ViewState.IDLE
        self.input_text = ""
        self.session: Optional[Dict[str, Any]] = None
        self.proposals: List[ProposalView] = []
        self.rejected_count = 0
        self.error: Optional[ClientApiError] = None
        self.redirect_to: Optional[str] = None

    # ---------------------------------------------------------
    # Valores derivados
    # ---------------------------------------------------------

    @property
    def accepted_count(self) -> int:
        return sum(1 for p in self.proposals if p.is_accepted)

    @property
    def has_unsaved_proposals(self) -> bool:
        return self.view_state == ViewState.REVIEWING and len(self.proposals) > 0

    # Aviso "alterações não salvas" ao sair da página
    @property
    def should_warn_on_leave(self) -> bool:
        return self.has_unsaved_proposals

    @property
    def can_save(self) -> bool:
        return self.view_state == ViewState.REVIEWING and self.session is not None and self.accepted_count > 0

    # ---------------------------------------------------------
    # Geração
    # ---------------------------------------------------------

    def set_input_text(self, text: str) -> None:
        self.input_text = text

    def generate(self) -> None:
        if self.view_state not in (ViewState.IDLE, ViewState.FAILED):
            raise ReviewStateError(f"Cannot generate while {self.view_state.value}")

        text = self.input_text.strip()
        if not INPUT_TEXT_MIN <= len(text) <= INPUT_TEXT_MAX:
            # Fica no estado atual; nada vai ao servidor
            message = f"Text must be between {INPUT_TEXT_MIN} and {INPUT_TEXT_MAX} characters"
            self.error = ClientApiError("INVALID_INPUT", message, details={"input_text": message})
            return

        self.view_state = ViewState.GENERATING
        self.error = None
        try:
            data = self.api.create_session(text)
        except ClientApiError as e:
            logger.warning(f"Geração falhou: {e.code}")
            self.error = e
            self.view_state = ViewState.FAILED
            return

        self.session = data["session"]
        self.proposals = [
            ProposalView(
                temporary_id=str(p["temporary_id"]),
                front_text=p["front_text"],
                back_text=p["back_text"],
            )
            for p in data["proposals"]
        ]
        self.rejected_count = 0
        self.view_state = ViewState.REVIEWING
        self._snapshot()

    def retry(self) -> None:
        self.generate()

    def reset(self) -> None:
        self._reset_fields()
        self.store.clear(SNAPSHOT_KEY)

    # ---------------------------------------------------------
    # Revisão
    # ---------------------------------------------------------

    def _require_reviewing(self) -> None:
        if self.view_state != ViewState.REVIEWING:
            raise ReviewStateError(f"Proposals can only be changed while reviewing, not {self.view_state.value}")

    def _find(self, temporary_id: str) -> ProposalView:
        for proposal in self.proposals:
            if proposal.temporary_id == temporary_id:
                return proposal
        raise KeyError(temporary_id)

    def toggle(self, temporary_id: str) -> None:
        self._require_reviewing()
        proposal = self._find(temporary_id)
        proposal.is_accepted = not proposal.is_accepted
        self._snapshot()

    def edit(self, temporary_id: str, front_text: str, back_text: str) -> bool:
        """Aplica a edição; texto inválido deixa a proposta como estava e devolve False."""
        self._require_reviewing()
        proposal = self._find(temporary_id)

        front_text, back_text = front_text.strip(), back_text.strip()
        details = _card_text_errors(front_text=front_text, back_text=back_text)
        if details:
            self.error = ClientApiError("INVALID_INPUT", next(iter(details.values())), details=details)
            return False

        if proposal.original_front is None:
            proposal.original_front = proposal.front_text
            proposal.original_back = proposal.back_text
        proposal.front_text = front_text
        proposal.back_text = back_text
        proposal.is_edited = True
        # Editar implica aceitar
        proposal.is_accepted = True
        self.error = None
        self._snapshot()
        return True

    def reject(self, temporary_id: str) -> None:
        """Remove a proposta de vez; não há como desfazer nesta sessão."""
        self._require_reviewing()
        proposal = self._find(temporary_id)
        self.proposals.remove(proposal)
        self.rejected_count += 1
        self._snapshot()

    def select_all(self) -> None:
        self._require_reviewing()
        for proposal in self.proposals:
            proposal.is_accepted = True
        self._snapshot()

    def deselect_all(self) -> None:
        self._require_reviewing()
        for proposal in self.proposals:
            proposal.is_accepted = False
        self._snapshot()

    # ---------------------------------------------------------
    # Salvamento
    # ---------------------------------------------------------

    def save(self) -> bool:
        self._require_reviewing()

        accepted = [p for p in self.proposals if p.is_accepted]
        if self.session is None or not accepted:
            # Não vai ao servidor
            self.error = ClientApiError("NO_ACCEPTED_PROPOSALS", "Accept at least one proposal before saving")
            return False

        # Não aceitas e ainda presentes contam como rejeitadas para o servidor
        rejected_count = self.rejected_count + (len(self.proposals) - len(accepted))

        self.view_state = ViewState.SAVING
        self.error = None
        try:
            self.api.save_batch(self.session["id"], [p.to_save_card() for p in accepted], rejected_count)
        except ClientApiError as e:
            logger.warning(f"Salvamento falhou: {e.code}")
            self.error = e
            self.view_state = ViewState.REVIEWING
            return False

        self.store.clear(SNAPSHOT_KEY)
        self.view_state = ViewState.SAVED
        self.redirect_to = SUCCESS_REDIRECT
        return True

    # ---------------------------------------------------------
    # Snapshot / recuperação
    # ---------------------------------------------------------

    def _snapshot(self) -> None:
        self.store.set(
            SNAPSHOT_KEY,
            {
                "saved_at": self.clock(),
                "input_text": self.input_text,
                "session": self.session,
                "proposals": [asdict(p) for p in self.proposals],
                "rejected_count": self.rejected_count,
            },
        )

    def pending_recovery(self) -> Optional[Dict[str, Any]]:
        """Snapshot recuperável, ou None. Snapshots vencidos são apagados em silêncio."""
        snapshot = self.store.get(SNAPSHOT_KEY)
        if snapshot is None:
            return None

        age = self.clock() - snapshot.get("saved_at", 0)
        if age >= self.recovery_ttl:
            self.store.clear(SNAPSHOT_KEY)
            return None
        return snapshot

    def recover(self) -> bool:
        snapshot = self.pending_recovery()
        if snapshot is None:
            return False

        self.input_text = snapshot["input_text"]
        self.session = snapshot["session"]
        self.proposals = [ProposalView(**p) for p in snapshot["proposals"]]
        self.rejected_count = snapshot["rejected_count"]
        self.error = None
        self.redirect_to = None
        self.view_state = ViewState.REVIEWING
        return True

    def discard_recovery(self) -> None:
        self.store.clear(SNAPSHOT_KEY)
