"""
Global error handling middleware.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable, Dict

from arbor.infrastructure.content_provider import ProviderError
from arbor.services.application.game_service import SessionNotFound
from arbor.services.domain.game_state import InvalidTransition


logger = logging.getLogger(__name__)


def _context(request: Request) -> Dict[str, str]:
    """Logging context for a request."""
    return {
        "path": request.url.path,
        "method": request.method,
        "session_id": request.path_params.get("session_id", ""),
    }


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": detail})


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Translates exceptions escaping a route into JSON error bodies.

    Routes normally map game errors themselves; this is the backstop for
    anything they let through.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            return await call_next(request)

        except ProviderError as e:
            logger.error(f"Content provider error: {e.message}", extra=_context(request))
            return _error(e.status_code, "Content provider error", e.message)

        except SessionNotFound as e:
            logger.info(str(e), extra=_context(request))
            return _error(status.HTTP_404_NOT_FOUND, "Session not found", str(e))

        except InvalidTransition as e:
            logger.warning(f"Rejected {type(e.event).__name__}: {e.message}", extra=_context(request))
            return _error(status.HTTP_409_CONFLICT, "Invalid action", e.message)

        except ValueError as e:
            logger.warning(f"Validation error: {e}", extra=_context(request))
            return _error(status.HTTP_400_BAD_REQUEST, "Invalid request", str(e))

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}", extra=_context(request))
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )
