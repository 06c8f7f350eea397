"""HTTP errors for AI analysis failures, carrying a machine-readable code.

Usage:
    from edumessage.core.ai_errors import raise_for_ai_error

    try:
        result = await ai_service.categorize_question(...)
    except AIServiceError as e:
        raise_for_ai_error(e)

The response body will be:
    {"detail": "...", "error_code": "AI_RATE_LIMITED"}

Clients can switch on error_code instead of parsing the detail text.
"""

from fastapi import HTTPException
from fastapi.responses import JSONResponse


AI_NOT_CONFIGURED = "AI_NOT_CONFIGURED"
AI_RATE_LIMITED = "AI_RATE_LIMITED"
AI_UNAVAILABLE = "AI_UNAVAILABLE"
AI_ANALYSIS_FAILED = "AI_ANALYSIS_FAILED"

# (substrings, status, code, friendly detail), first match wins
_AI_ERROR_PATTERNS = [
    (("api key", "gemini_api_key"), 503, AI_NOT_CONFIGURED,
     "The AI service is not configured. Ask an administrator to set the Gemini API key."),
    (("rate limit", "quota"), 429, AI_RATE_LIMITED,
     "The AI service is busy right now. Please try again in a minute."),
    (("network", "timeout", "timed out"), 503, AI_UNAVAILABLE,
     "Could not reach the AI service. Check the connection and try again."),
]


class AIHintException(HTTPException):
    """HTTPException that includes an error_code in the JSON response."""

    def __init__(self, status_code: int, detail: str, error_code: str):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code


def classify_ai_error(message: str) -> tuple[int, str, str]:
    """Map a raw AI error message to (status_code, error_code, detail)."""
    lowered = (message or "").lower()
    for needles, status_code, code, detail in _AI_ERROR_PATTERNS:
        if any(n in lowered for n in needles):
            return status_code, code, detail
    return 500, AI_ANALYSIS_FAILED, "AI analysis failed. Please try again."


def raise_for_ai_error(exc: Exception) -> None:
    status_code, code, detail = classify_ai_error(str(exc))
    raise AIHintException(status_code=status_code, detail=detail, error_code=code) from exc


def ai_hint_exception_handler(_request, exc: AIHintException):
    """Custom handler registered on the FastAPI app."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )
