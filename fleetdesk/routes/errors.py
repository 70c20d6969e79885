# FleetDesk - API Error Handling
# Maps service exceptions onto HTTP responses

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from fleetdesk.logging import get_logger
from fleetdesk.services.allocation import AllocationConfirmationRequired, OverAllocationError
from fleetdesk.services.auth import AuthenticationError, AuthorizationError
from fleetdesk.services.errors import NotFoundError


logger = get_logger(__name__)


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def register_error_handlers(app: FastAPI) -> None:
    """
    Install handlers for the exceptions services raise.

    Services flush but never commit, so a request that fails here is
    rolled back when its session closes.

        ValueError                      -> 400
        OverAllocationError             -> 400 (+ excess_hours)
        AuthenticationError             -> 401
        AuthorizationError              -> 403
        NotFoundError                   -> 404
        AllocationConfirmationRequired  -> 409 (+ remaining_hours)
        SQLAlchemyError                 -> 500
    """

    @app.exception_handler(OverAllocationError)
    def over_allocation(request: Request, exc: OverAllocationError):
        return _error(
            status.HTTP_400_BAD_REQUEST,
            str(exc),
            allocated_hours=exc.allocated,
            available_hours=exc.available,
            excess_hours=exc.excess,
        )

    @app.exception_handler(AllocationConfirmationRequired)
    def confirmation_required(request: Request, exc: AllocationConfirmationRequired):
        return _error(
            status.HTTP_409_CONFLICT,
            str(exc),
            allocated_hours=exc.allocated,
            available_hours=exc.available,
            remaining_hours=exc.remaining,
        )

    @app.exception_handler(ValueError)
    def invalid_input(request: Request, exc: ValueError):
        logger.info("request_rejected", path=request.url.path, error=str(exc))
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(NotFoundError)
    def not_found(request: Request, exc: NotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(AuthenticationError)
    def not_authenticated(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AuthorizationError)
    def forbidden(request: Request, exc: AuthorizationError):
        return _error(status.HTTP_403_FORBIDDEN, str(exc))

    @app.exception_handler(SQLAlchemyError)
    def database_failure(request: Request, exc: SQLAlchemyError):
        logger.error("database_error", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error, nothing was saved")
