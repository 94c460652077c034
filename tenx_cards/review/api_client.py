from typing import Any, Dict, List, Optional

import requests

RETRYABLE_STATUSES = (429, 502, 503)


class ClientApiError(Exception):
    """Erro da API já mapeado para a UI (retryable + contagem regressiva)."""

    def __init__(
        self,
        code: str,
        message: str,
        status: Optional[int] = None,
        details: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        self.retryable = status in RETRYABLE_STATUSES
        self.retry_after = _parse_retry_after(self.details) if status == 429 else None


def _parse_retry_after(details: Dict[str, str]) -> Optional[int]:
    try:
        return int(details["retry_after"])
    except (KeyError, TypeError, ValueError):
        return None


class FlashcardsApiClient:
    """
    Cliente HTTP das rotas de geração e batch save.
    `http` é qualquer objeto com .post(url, json=, headers=, timeout=)
    (requests.Session por padrão).
    """

    def __init__(self, base_url: str, token: Optional[str] = None, http: Any = None, timeout: float = 90.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.http = http or requests.Session()
        self.timeout = timeout

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = self.http.post(f"{self.base_url}{path}", json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ClientApiError("NETWORK_ERROR", f"Unable to reach the server: {e}")

        if response.status_code >= 400:
            try:
                error = response.json()["error"]
                code, message, details = error["code"], error["message"], error.get("details")
            except (ValueError, KeyError, TypeError, AttributeError):
                raise ClientApiError("INTERNAL_ERROR", "An unexpected error occurred", response.status_code)
            raise ClientApiError(code, message, response.status_code, details)
        return response.json()

    def create_session(
        self,
        input_text: str,
        model_identifier: Optional[str] = None,
        client_request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._post(
            "/api/ai-generation/sessions",
            {
                "input_text": input_text,
                "model_identifier": model_identifier,
                "client_request_id": client_request_id,
            },
        )

    def save_batch(self, audit_id: str, cards: List[Dict[str, str]], rejected_count: int) -> Dict[str, Any]:
        return self._post(
            "/api/flashcards/batch",
            {"ai_generation_audit_id": audit_id, "cards": cards, "rejected_count": rejected_count},
        )
