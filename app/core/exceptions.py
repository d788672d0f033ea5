"""
Error types raised by services and handlers.

Every error carries the HTTP status it maps to and a human-readable message;
the API renders them as ``{"error": message}``.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class StudioError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationFailed(StudioError):
    status_code = 400


class NotAuthenticated(StudioError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFound(StudioError):
    status_code = 404


class GitHubError(StudioError):
    """A GitHub API call failed; the message is GitHub's own where available."""

    status_code = 500


class ConfigurationError(StudioError):
    status_code = 500

    def __init__(self, message: str = "Server configuration error"):
        super().__init__(message)


async def studio_exception_handler(request: Request, exc: StudioError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
