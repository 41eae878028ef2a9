from __future__ import annotations

from typing import Any, Dict, Optional


class GalleryError(Exception):
    """
    Base for failures the HTTP boundary knows how to render.

    `context` is merged into the JSON error body next to `error` and `message`.
    """
    status_code: int = 500
    error: str = "gallery_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = int(status_code)
        if error is not None:
            self.error = error
        self.context: Dict[str, Any] = dict(context or {})

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error, "message": self.message}
        payload.update(self.context)
        return payload


class RetrievalError(GalleryError):
    """Upstream API or images folder unavailable. Carries the upstream status when there is one."""
    error = "retrieval_failed"


class UnexpectedError(GalleryError):
    """Anything else, e.g. an upstream body that is not JSON."""
    error = "unexpected_error"
