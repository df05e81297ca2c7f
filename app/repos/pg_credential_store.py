"""PostgreSQL implementation of CredentialStore."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import CredentialExists, CredentialNotFound, Unauthorized
from app.db.tables import (
    CREDENTIAL_ID_MAX,
    CREDENTIAL_ID_MIN,
    REGISTRY_STATE_ID,
    CredentialRow,
    RegistryStateRow,
)


def _storable(credential_id: int) -> bool:
    return CREDENTIAL_ID_MIN <= credential_id <= CREDENTIAL_ID_MAX


class PgCredentialStore:
    """Satisfies the CredentialStore Protocol using PostgreSQL via SQLAlchemy.

    Each transaction opens its own session and takes a row lock on
    registry_state (SELECT ... FOR UPDATE).  Every registry operation
    touches that row first, so operations from all API instances are
    serialized.  The session commits on clean exit and rolls back when
    a guard raises.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_PgCredentialTxn]:
        async with self._session_factory() as session:
            async with session.begin():
                state = await _lock_registry_state(session)
                yield _PgCredentialTxn(session, state)


class _PgCredentialTxn:
    def __init__(self, session: AsyncSession, state: RegistryStateRow) -> None:
        self._session = session
        self._state = state

    async def last_credential_id(self) -> int:
        return self._state.last_credential_id

    async def owner_of(self, credential_id: int) -> str | None:
        if not _storable(credential_id):
            return None
        stmt = select(CredentialRow.owner).where(CredentialRow.id == credential_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def uri_of(self, credential_id: int) -> str | None:
        if not _storable(credential_id):
            return None
        stmt = select(CredentialRow.uri).where(CredentialRow.id == credential_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def revoked_of(self, credential_id: int) -> bool:
        if not _storable(credential_id):
            return False
        stmt = select(CredentialRow.revoked).where(CredentialRow.id == credential_id)
        revoked = (await self._session.execute(stmt)).scalar_one_or_none()
        return bool(revoked)

    async def mint(self, owner: str, uri: str) -> int:
        new_id = self._state.last_credential_id + 1
        self._session.add(CredentialRow(id=new_id, owner=owner, uri=uri, revoked=False))
        self._state.last_credential_id = new_id
        try:
            await self._session.flush()
        except IntegrityError:
            # Only reachable if rows were written outside the registry.
            raise CredentialExists(details={"credential_id": new_id}) from None
        return new_id

    async def set_uri(self, credential_id: int, uri: str) -> None:
        stmt = (
            update(CredentialRow)
            .where(CredentialRow.id == credential_id)
            .values(uri=uri)
        )
        await self._session.execute(stmt)

    async def set_revoked(self, credential_id: int) -> None:
        stmt = (
            update(CredentialRow)
            .where(CredentialRow.id == credential_id)
            .values(revoked=True)
        )
        await self._session.execute(stmt)

    async def transfer(self, credential_id: int, sender: str, recipient: str) -> None:
        if not _storable(credential_id):
            raise CredentialNotFound(details={"credential_id": credential_id})

        # Guarded UPDATE: the ownership check and the move are one statement.
        stmt = (
            update(CredentialRow)
            .where(CredentialRow.id == credential_id, CredentialRow.owner == sender)
            .values(owner=recipient)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 1:
            return

        if await self.owner_of(credential_id) is None:
            raise CredentialNotFound(details={"credential_id": credential_id})
        raise Unauthorized(details={"credential_id": credential_id, "caller": sender})


async def _lock_registry_state(session: AsyncSession) -> RegistryStateRow:
    # Migration seeds this row; databases built via create_all get it here.
    seed = (
        pg_insert(RegistryStateRow)
        .values(id=REGISTRY_STATE_ID, last_credential_id=0)
        .on_conflict_do_nothing(index_elements=[RegistryStateRow.id])
    )
    await session.execute(seed)

    stmt = (
        select(RegistryStateRow)
        .where(RegistryStateRow.id == REGISTRY_STATE_ID)
        .with_for_update()
    )
    return (await session.execute(stmt)).scalar_one()
