from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger


class ApiError(Exception):
    """Erro visível ao cliente: vira {"error": {code, message, details?}}."""

    def __init__(self, code: str, message: str, status: int, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details


def error_response(code: str, message: str, status: int, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(
        status_code=status,
        content={"error": body},
        headers={"X-Content-Type-Options": "nosniff"},
    )


def _field_errors(errors) -> Dict[str, str]:
    # Primeira mensagem por campo, como o cliente espera
    details: Dict[str, str] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        details.setdefault(field, err.get("msg", "Invalid value"))
    return details


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.code, exc.message, exc.status, exc.details)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()

    if any(err.get("type") == "json_invalid" for err in errors):
        return error_response("INVALID_JSON", "Unable to parse request body", 422)

    details = _field_errors(errors)
    if errors and errors[0].get("loc", ("",))[0] == "query":
        return error_response("INVALID_QUERY_PARAMETERS", "Invalid query parameters provided", 400, details)

    first_message = next(iter(details.values()), "Validation failed")
    return error_response("INVALID_INPUT", first_message, 400, details)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Erro inesperado em {request.method} {request.url.path}: {exc}")
    return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
