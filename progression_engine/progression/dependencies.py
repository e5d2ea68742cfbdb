"""FastAPI dependencies for the progression API.

Provides dependency injection for:
- Progression service
- Current learner id (forwarded by the identity gateway)
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.responses import ORJSONResponse

from progression_engine.core.context import set_user_id
from progression_engine.exceptions import ProgressionError

from .service import ProgressionService


async def get_progression_service(request: Request) -> ProgressionService:
    """Get progression service from app state."""
    app_state = request.app.state
    if (
        not hasattr(app_state, "progression_service")
        or not app_state.progression_service
    ):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progression service not available",
        )
    return app_state.progression_service


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Learner id forwarded in the ``X-User-Id`` header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    user_id = x_user_id.strip()
    set_user_id(user_id)
    return user_id


# Type aliases for dependency injection
ProgressionServiceDep = Annotated[ProgressionService, Depends(get_progression_service)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]


ERROR_STATUS_MAP = {
    "exam_not_found": status.HTTP_404_NOT_FOUND,
    "quiz_not_found": status.HTTP_404_NOT_FOUND,
    "progress_not_found": status.HTTP_404_NOT_FOUND,
    "cooldown_active": status.HTTP_429_TOO_MANY_REQUESTS,
    "already_passed": status.HTTP_409_CONFLICT,
    "attempts_exhausted": status.HTTP_409_CONFLICT,
    "invalid_exam_definition": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "feature_disabled": status.HTTP_503_SERVICE_UNAVAILABLE,
    "transaction_conflict": status.HTTP_503_SERVICE_UNAVAILABLE,
    "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def handle_progression_error(error: ProgressionError) -> ORJSONResponse:
    """Convert progression errors to HTTP responses.

    The body carries ``code`` and ``message`` (and ``retry_at`` for an
    active cooldown).
    """
    status_code = ERROR_STATUS_MAP.get(
        error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return ORJSONResponse(
        status_code=status_code,
        content={"error": True, **error.to_dict()},
    )
