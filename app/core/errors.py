"""Credential registry error kinds.

Hierarchy
---------
::

    CredentialRegistryError
    +-- Unauthorized          caller is not the recorded owner
    +-- CredentialExists      id already bound (unreachable with monotonic ids)
    +-- CredentialNotFound    id has no recorded owner
    +-- InvalidUri            URI length outside [1, 256]
    +-- CredentialRevoked     credential is (already) revoked

Each failed operation raises exactly one of these; nothing is wrapped
or chained.  ``code`` is the kind name surfaced to HTTP clients and
used as the ``outcome`` metric label.
"""

from __future__ import annotations

from typing import Any


class CredentialRegistryError(Exception):
    """Base exception for every registry precondition failure.

    Attributes
    ----------
    code : str
        Stable kind name, e.g. ``"CredentialNotFound"``.
    http_status : int
        Status code the HTTP layer responds with.
    message : str
        Human-readable description.
    details : dict[str, Any]
        Machine-readable context (credential_id, caller, ...).
    """

    code: str = "CredentialRegistryError"
    http_status: int = 400
    message: str = "Credential registry operation rejected"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class Unauthorized(CredentialRegistryError):
    code = "Unauthorized"
    http_status = 403
    message = "Caller is not the owner of this credential"


class CredentialExists(CredentialRegistryError):
    code = "CredentialExists"
    http_status = 409
    message = "Credential already exists"


class CredentialNotFound(CredentialRegistryError):
    code = "CredentialNotFound"
    http_status = 404
    message = "Credential not found"


class InvalidUri(CredentialRegistryError):
    code = "InvalidUri"
    http_status = 422
    message = "URI length must be between 1 and 256 characters"


class CredentialRevoked(CredentialRegistryError):
    code = "CredentialRevoked"
    http_status = 409
    message = "Credential is revoked"
