from fastapi import HTTPException, status
from loguru import logger


class NotFound(LookupError):
    """A requested row does not exist (or is hidden from the caller)."""


class ArrangementLocked(PermissionError):
    """Latest arrangement is approved and there is nothing new to arrange."""

    def __init__(self, message: str, arrangement=None):
        super().__init__(message)
        self.arrangement = arrangement


def to_http(exc: Exception) -> HTTPException:
    """
    Services raise plain exceptions:
      ValueError      -> 400
      PermissionError -> 403
      NotFound        -> 404

    KeyError/IndexError are bugs, not missing rows: they fall through to 500.
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, PermissionError):
        return HTTPException(status.HTTP_403_FORBIDDEN, str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))

    logger.exception(f"Unhandled service error: {exc}")
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
