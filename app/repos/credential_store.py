"""Credential store: the registry's durable state behind a Protocol.

Registry state is three maps keyed by credential id plus one counter:

    last_credential_id   int, starts at 0, +1 per issuance
    owner_of             id -> principal   (never deleted)
    uri_of               id -> str         (never deleted)
    revoked_of           id -> bool        (absent reads as False)

Same pattern as the rate limiter and token blacklist: a Protocol with
an in-memory implementation for dev/test and networked implementations
(PgCredentialStore, RedisCredentialStore) for production.

Every registry operation runs inside ``store.transaction()``.  The
transaction serializes it against all other operations, and every
operation finishes its guards before its one write, so a rejected
call never leaves a partial effect.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, runtime_checkable

from app.core.errors import CredentialNotFound, Unauthorized


@runtime_checkable
class CredentialTxn(Protocol):
    """Primitive reads and writes available inside one transaction."""

    async def last_credential_id(self) -> int: ...
    async def owner_of(self, credential_id: int) -> str | None: ...
    async def uri_of(self, credential_id: int) -> str | None: ...

    async def revoked_of(self, credential_id: int) -> bool:
        """Total lookup: False for ids that were never revoked or never issued."""
        ...

    async def mint(self, owner: str, uri: str) -> int:
        """Allocate the next id and bind owner and uri to it. Returns the id."""
        ...

    async def set_uri(self, credential_id: int, uri: str) -> None: ...
    async def set_revoked(self, credential_id: int) -> None: ...

    async def transfer(self, credential_id: int, sender: str, recipient: str) -> None:
        """Move ownership from sender to recipient as one check-and-move.

        Raises CredentialNotFound when no owner is recorded and
        Unauthorized when sender is not the current owner.
        """
        ...


@runtime_checkable
class CredentialStore(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[CredentialTxn]: ...


class InMemoryCredentialStore:
    """Dict-backed store for dev/test.

    LIMITATION: state is per-process and lost on restart.  Use the
    Postgres or Redis store when more than one API instance runs.
    """

    def __init__(self) -> None:
        self._last_credential_id = 0
        self._owner_of: dict[int, str] = {}
        self._uri_of: dict[int, str] = {}
        self._revoked_of: dict[int, bool] = {}
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryCredentialStore]:
        async with self._lock:
            yield self

    async def last_credential_id(self) -> int:
        return self._last_credential_id

    async def owner_of(self, credential_id: int) -> str | None:
        return self._owner_of.get(credential_id)

    async def uri_of(self, credential_id: int) -> str | None:
        return self._uri_of.get(credential_id)

    async def revoked_of(self, credential_id: int) -> bool:
        return self._revoked_of.get(credential_id, False)

    async def mint(self, owner: str, uri: str) -> int:
        new_id = self._last_credential_id + 1
        self._owner_of[new_id] = owner
        self._uri_of[new_id] = uri
        self._last_credential_id = new_id
        return new_id

    async def set_uri(self, credential_id: int, uri: str) -> None:
        self._uri_of[credential_id] = uri

    async def set_revoked(self, credential_id: int) -> None:
        self._revoked_of[credential_id] = True

    async def transfer(self, credential_id: int, sender: str, recipient: str) -> None:
        # No await between the check and the write.
        owner = self._owner_of.get(credential_id)
        if owner is None:
            raise CredentialNotFound(details={"credential_id": credential_id})
        if owner != sender:
            raise Unauthorized(
                details={"credential_id": credential_id, "caller": sender}
            )
        self._owner_of[credential_id] = recipient
