"""Redis implementation of CredentialStore.

Layout (all keys share the ``credential:`` prefix):

    credential:last_id    string counter (INCR)
    credential:owner      hash  id -> principal
    credential:uri        hash  id -> uri
    credential:revoked    hash  id -> "1"   (absent = not revoked)
    credential:lock       distributed lock held for one transaction

WHY LUA FOR mint AND transfer:
Allocation-plus-writes and check-plus-move are read-modify-write
sequences.  Redis executes a Lua script atomically, so no other client
can observe a half-minted credential or slip a transfer in between the
owner check and the owner write.  The transaction lock already
serializes registry operations; the scripts keep the two primitives
atomic on their own as well.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from app.core.errors import CredentialNotFound, Unauthorized

_PREFIX = "credential:"
_LAST_ID_KEY = f"{_PREFIX}last_id"
_OWNER_KEY = f"{_PREFIX}owner"
_URI_KEY = f"{_PREFIX}uri"
_REVOKED_KEY = f"{_PREFIX}revoked"
_LOCK_KEY = f"{_PREFIX}lock"

# KEYS[1] = last_id, KEYS[2] = owner hash, KEYS[3] = uri hash
# ARGV[1] = owner, ARGV[2] = uri
_MINT_LUA = """
local new_id = redis.call('INCR', KEYS[1])
redis.call('HSET', KEYS[2], new_id, ARGV[1])
redis.call('HSET', KEYS[3], new_id, ARGV[2])
return new_id
"""

# KEYS[1] = owner hash
# ARGV[1] = credential id, ARGV[2] = sender, ARGV[3] = recipient
# Returns 1 moved, 0 no such credential, -1 sender is not the owner
_TRANSFER_LUA = """
local owner = redis.call('HGET', KEYS[1], ARGV[1])
if not owner then
    return 0
end
if owner ~= ARGV[2] then
    return -1
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[3])
return 1
"""


class RedisCredentialStore:
    """Redis-backed store, shared across all API instances."""

    def __init__(
        self,
        redis_client,
        *,
        lock_timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ) -> None:
        self._redis = redis_client
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout
        self._mint_script = redis_client.register_script(_MINT_LUA)
        self._transfer_script = redis_client.register_script(_TRANSFER_LUA)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[RedisCredentialStore]:
        lock = self._redis.lock(
            _LOCK_KEY,
            timeout=self._lock_timeout,
            blocking_timeout=self._blocking_timeout,
        )
        async with lock:
            yield self

    async def last_credential_id(self) -> int:
        value = await self._redis.get(_LAST_ID_KEY)
        return int(value) if value is not None else 0

    async def owner_of(self, credential_id: int) -> str | None:
        return await self._redis.hget(_OWNER_KEY, str(credential_id))

    async def uri_of(self, credential_id: int) -> str | None:
        return await self._redis.hget(_URI_KEY, str(credential_id))

    async def revoked_of(self, credential_id: int) -> bool:
        return bool(await self._redis.hexists(_REVOKED_KEY, str(credential_id)))

    async def mint(self, owner: str, uri: str) -> int:
        new_id = await self._mint_script(
            keys=[_LAST_ID_KEY, _OWNER_KEY, _URI_KEY],
            args=[owner, uri],
        )
        return int(new_id)

    async def set_uri(self, credential_id: int, uri: str) -> None:
        await self._redis.hset(_URI_KEY, str(credential_id), uri)

    async def set_revoked(self, credential_id: int) -> None:
        await self._redis.hset(_REVOKED_KEY, str(credential_id), "1")

    async def transfer(self, credential_id: int, sender: str, recipient: str) -> None:
        result = int(
            await self._transfer_script(
                keys=[_OWNER_KEY],
                args=[str(credential_id), sender, recipient],
            )
        )
        if result == 0:
            raise CredentialNotFound(details={"credential_id": credential_id})
        if result < 0:
            raise Unauthorized(
                details={"credential_id": credential_id, "caller": sender}
            )
