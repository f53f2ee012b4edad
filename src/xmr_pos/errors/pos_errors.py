"""POSError: root of every error the settlement backend raises on purpose."""

from __future__ import annotations


class POSError(Exception):
    """An error with an HTTP status and a stable machine-readable code.

    Route handlers let these propagate; the app's exception handler renders
    them as ``{"code": ..., "message": ...}`` with :attr:`status_code`.
    """

    def __init__(self, message: str, *, status_code: int = 500, code: str = "pos-error") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def to_dict(self) -> dict[str, str]:
        """Response body for this error."""
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, status_code={self.status_code})"
