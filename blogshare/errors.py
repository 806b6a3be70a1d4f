# blogshare/errors.py
"""
Fehler-Taxonomie für Freigaben.

NotFound und Expired werden bewusst unterschieden (UI: "Link abgelaufen" vs.
generische 404). Ein falscher und ein deaktivierter Token sind beide NotFound.
"""
from __future__ import annotations


class ShareError(Exception):
    status = 500
    reason = "error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return "share error"

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.message, "reason": self.reason}


class NotFoundError(ShareError):
    status = 404
    reason = "not_found"

    @classmethod
    def default_message(cls) -> str:
        return "not found"


class ExpiredError(ShareError):
    status = 410
    reason = "expired"

    @classmethod
    def default_message(cls) -> str:
        return "link expired, ask the owner for a new one"


class ValidationError(ShareError):
    status = 400
    reason = "validation_error"

    @classmethod
    def default_message(cls) -> str:
        return "invalid input"
