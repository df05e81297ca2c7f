"""Credential registry: the lifecycle state machine.

Operations and their guards, checked in this order:

  issue_credential(uri)            InvalidUri
  revoke_credential(id)            CredentialNotFound -> Unauthorized -> CredentialRevoked
  transfer_credential(id, to)      CredentialRevoked -> (store.transfer:
                                   CredentialNotFound | Unauthorized)
  update_credential_uri(id, uri)   CredentialNotFound -> Unauthorized -> InvalidUri

Transfer does not check ownership itself.  The store's transfer
primitive checks and moves in one step, and it is the only place
transfer authorization happens.

Revocation is one-way and does not freeze metadata: the owner of a
revoked credential may still update its URI, but may not transfer it.

Revoke, transfer and update return a Credential snapshot read inside
their own transaction, so it shows exactly the state that operation
left behind.

Read accessors need no caller, never mutate and never raise for
unknown ids.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from app.core.errors import (
    CredentialNotFound,
    CredentialRegistryError,
    CredentialRevoked,
    InvalidUri,
    Unauthorized,
)
from app.core.metrics import CREDENTIAL_OPERATIONS, LAST_CREDENTIAL_ID
from app.db.engine import async_session_factory
from app.db.redis import redis_pool
from app.models.credential import URI_MAX_LENGTH, URI_MIN_LENGTH, Credential
from app.repos.credential_store import (
    CredentialStore,
    CredentialTxn,
    InMemoryCredentialStore,
)
from app.repos.pg_credential_store import PgCredentialStore
from app.repos.redis_credential_store import RedisCredentialStore

logger = logging.getLogger(__name__)


def validate_uri(uri: str) -> None:
    """Raise InvalidUri unless 1 <= len(uri) <= 256."""
    if not URI_MIN_LENGTH <= len(uri) <= URI_MAX_LENGTH:
        raise InvalidUri(details={"length": len(uri)})


@contextmanager
def _observe(
    operation: str, caller: str, credential_id: int | None = None
) -> Iterator[None]:
    """Count the outcome of one mutating operation and log rejections."""
    try:
        yield
    except CredentialRegistryError as e:
        CREDENTIAL_OPERATIONS.labels(operation=operation, outcome=e.code).inc()
        logger.warning(
            "Rejected %s caller=%s credential_id=%s: %s",
            operation,
            caller,
            credential_id,
            e.code,
            extra={
                "operation": operation,
                "caller": caller,
                "credential_id": credential_id,
                "error_code": e.code,
            },
        )
        raise
    CREDENTIAL_OPERATIONS.labels(operation=operation, outcome="ok").inc()


async def _read_snapshot(txn: CredentialTxn, credential_id: int) -> Credential:
    owner = await txn.owner_of(credential_id)
    if owner is None:
        # Credentials are never deleted; an issued id always has an owner.
        raise CredentialNotFound(details={"credential_id": credential_id})
    return Credential(
        credential_id=credential_id,
        owner=owner,
        uri=await txn.uri_of(credential_id) or "",
        revoked=await txn.revoked_of(credential_id),
    )


class CredentialRegistry:
    """Issues, revokes, transfers and updates credentials held in a store.

    The store is injected; every operation is a function of
    (store state, caller, arguments) run inside one store transaction.
    """

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def issue_credential(self, caller: str, uri: str) -> int:
        """Mint a credential owned by caller and return its new id."""
        with _observe("issue", caller):
            validate_uri(uri)
            async with self._store.transaction() as txn:
                credential_id = await txn.mint(caller, uri)
                # Still under the transaction lock, so the gauge never goes back.
                LAST_CREDENTIAL_ID.set(credential_id)

        logger.info(
            "Issued credential id=%d owner=%s",
            credential_id,
            caller,
            extra={"operation": "issue", "caller": caller, "credential_id": credential_id},
        )
        return credential_id

    async def revoke_credential(self, caller: str, credential_id: int) -> Credential:
        with _observe("revoke", caller, credential_id):
            async with self._store.transaction() as txn:
                owner = await txn.owner_of(credential_id)
                if owner is None:
                    raise CredentialNotFound(details={"credential_id": credential_id})
                if owner != caller:
                    raise Unauthorized(
                        details={"credential_id": credential_id, "caller": caller}
                    )
                if await txn.revoked_of(credential_id):
                    raise CredentialRevoked(
                        "Credential is already revoked",
                        details={"credential_id": credential_id},
                    )
                await txn.set_revoked(credential_id)
                credential = await _read_snapshot(txn, credential_id)

        logger.info(
            "Revoked credential id=%d",
            credential_id,
            extra={"operation": "revoke", "caller": caller, "credential_id": credential_id},
        )
        return credential

    async def transfer_credential(
        self, caller: str, credential_id: int, recipient: str
    ) -> Credential:
        with _observe("transfer", caller, credential_id):
            async with self._store.transaction() as txn:
                # Unknown ids read as not revoked and fall through to the
                # transfer primitive, which reports CredentialNotFound.
                if await txn.revoked_of(credential_id):
                    raise CredentialRevoked(
                        "Revoked credentials cannot be transferred",
                        details={"credential_id": credential_id},
                    )
                await txn.transfer(credential_id, sender=caller, recipient=recipient)
                credential = await _read_snapshot(txn, credential_id)

        logger.info(
            "Transferred credential id=%d from=%s to=%s",
            credential_id,
            caller,
            recipient,
            extra={
                "operation": "transfer",
                "caller": caller,
                "credential_id": credential_id,
            },
        )
        return credential

    async def update_credential_uri(
        self, caller: str, credential_id: int, new_uri: str
    ) -> Credential:
        with _observe("update_uri", caller, credential_id):
            async with self._store.transaction() as txn:
                owner = await txn.owner_of(credential_id)
                if owner is None:
                    raise CredentialNotFound(details={"credential_id": credential_id})
                if owner != caller:
                    raise Unauthorized(
                        details={"credential_id": credential_id, "caller": caller}
                    )
                validate_uri(new_uri)
                await txn.set_uri(credential_id, new_uri)
                credential = await _read_snapshot(txn, credential_id)

        logger.info(
            "Updated uri of credential id=%d",
            credential_id,
            extra={
                "operation": "update_uri",
                "caller": caller,
                "credential_id": credential_id,
            },
        )
        return credential

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    async def get_credential_uri(self, credential_id: int) -> str | None:
        async with self._store.transaction() as txn:
            return await txn.uri_of(credential_id)

    async def get_credential_owner(self, credential_id: int) -> str | None:
        async with self._store.transaction() as txn:
            return await txn.owner_of(credential_id)

    async def get_last_credential_id(self) -> int:
        async with self._store.transaction() as txn:
            return await txn.last_credential_id()

    async def is_revoked(self, credential_id: int) -> bool:
        """Revocation flag; False for ids that were never issued."""
        async with self._store.transaction() as txn:
            return await txn.revoked_of(credential_id)

    async def get_credential(self, credential_id: int) -> Credential | None:
        """Owner, uri and revocation read together, or None if never issued."""
        async with self._store.transaction() as txn:
            if await txn.owner_of(credential_id) is None:
                return None
            return await _read_snapshot(txn, credential_id)


# ---------------------------------------------------------------------------
# Module-level singleton, backend chosen from configuration
# ---------------------------------------------------------------------------


def build_credential_store() -> CredentialStore:
    if async_session_factory is not None:
        logger.info("Credential store: postgres")
        return PgCredentialStore(async_session_factory)
    if redis_pool is not None:
        logger.info("Credential store: redis")
        return RedisCredentialStore(redis_pool)
    logger.info("Credential store: in-memory")
    return InMemoryCredentialStore()


credential_registry = CredentialRegistry(build_credential_store())
