from __future__ import annotations

import asyncio

import pytest

from app.core.errors import (
    CredentialNotFound,
    CredentialRevoked,
    InvalidUri,
    Unauthorized,
)
from app.models.credential import Credential
from app.services.credential_registry import CredentialRegistry, validate_uri
from tests.conftest import ALICE, BOB, CAROL


def _issue(registry: CredentialRegistry, caller: str = ALICE, uri: str = "ipfs://abc") -> int:
    return asyncio.run(registry.issue_credential(caller, uri))


# ---- validate_uri ----


@pytest.mark.parametrize("length", [1, 2, 255, 256])
def test_validate_uri_accepts_bounds(length: int) -> None:
    validate_uri("u" * length)


@pytest.mark.parametrize("length", [0, 257, 1000])
def test_validate_uri_rejects_out_of_range(length: int) -> None:
    with pytest.raises(InvalidUri):
        validate_uri("u" * length)


def test_validate_uri_counts_characters_not_bytes() -> None:
    validate_uri("é" * 256)


# ---- issue_credential ----


def test_issue_returns_next_id_and_binds_owner_and_uri(
    registry: CredentialRegistry,
) -> None:
    before = asyncio.run(registry.get_last_credential_id())
    credential_id = _issue(registry, ALICE, "ipfs://abc")

    assert credential_id == before + 1
    assert asyncio.run(registry.get_credential_owner(credential_id)) == ALICE
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://abc"
    assert asyncio.run(registry.is_revoked(credential_id)) is False


@pytest.mark.parametrize("uri", ["", "x" * 257])
def test_issue_rejects_invalid_uri_and_keeps_counter(
    registry: CredentialRegistry, uri: str
) -> None:
    _issue(registry)
    with pytest.raises(InvalidUri):
        asyncio.run(registry.issue_credential(ALICE, uri))
    assert asyncio.run(registry.get_last_credential_id()) == 1
    assert asyncio.run(registry.get_credential_owner(2)) is None


def test_issue_ids_are_sequential_across_callers(registry: CredentialRegistry) -> None:
    callers = [ALICE, BOB, CAROL, ALICE, BOB]
    ids = [_issue(registry, caller, f"ipfs://{n}") for n, caller in enumerate(callers)]
    assert ids == [1, 2, 3, 4, 5]
    assert asyncio.run(registry.get_last_credential_id()) == 5


def test_issue_accepts_max_length_uri(registry: CredentialRegistry) -> None:
    uri = "u" * 256
    credential_id = _issue(registry, ALICE, uri)
    assert asyncio.run(registry.get_credential_uri(credential_id)) == uri


# ---- revoke_credential ----


def test_revoke_by_owner_succeeds_once(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.revoke_credential(ALICE, credential_id))
    assert asyncio.run(registry.is_revoked(credential_id)) is True

    with pytest.raises(CredentialRevoked):
        asyncio.run(registry.revoke_credential(ALICE, credential_id))
    assert asyncio.run(registry.is_revoked(credential_id)) is True


def test_revoke_by_non_owner_is_unauthorized(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    with pytest.raises(Unauthorized):
        asyncio.run(registry.revoke_credential(BOB, credential_id))
    assert asyncio.run(registry.is_revoked(credential_id)) is False


def test_revoke_unknown_id_is_not_found(registry: CredentialRegistry) -> None:
    with pytest.raises(CredentialNotFound):
        asyncio.run(registry.revoke_credential(ALICE, 99))


def test_revoke_checks_ownership_before_revocation(
    registry: CredentialRegistry,
) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.revoke_credential(ALICE, credential_id))
    # Already revoked, but a stranger learns only that they are not the owner.
    with pytest.raises(Unauthorized):
        asyncio.run(registry.revoke_credential(BOB, credential_id))


# ---- transfer_credential ----


def test_transfer_by_owner_moves_ownership(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.transfer_credential(ALICE, credential_id, BOB))
    assert asyncio.run(registry.get_credential_owner(credential_id)) == BOB

    # The new owner now controls it; the old one does not.
    with pytest.raises(Unauthorized):
        asyncio.run(registry.transfer_credential(ALICE, credential_id, CAROL))
    asyncio.run(registry.transfer_credential(BOB, credential_id, CAROL))
    assert asyncio.run(registry.get_credential_owner(credential_id)) == CAROL


def test_transfer_by_non_owner_fails_and_keeps_owner(
    registry: CredentialRegistry,
) -> None:
    credential_id = _issue(registry)
    with pytest.raises(Unauthorized):
        asyncio.run(registry.transfer_credential(BOB, credential_id, BOB))
    assert asyncio.run(registry.get_credential_owner(credential_id)) == ALICE


def test_transfer_of_revoked_credential_fails(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.revoke_credential(ALICE, credential_id))
    with pytest.raises(CredentialRevoked):
        asyncio.run(registry.transfer_credential(ALICE, credential_id, BOB))
    assert asyncio.run(registry.get_credential_owner(credential_id)) == ALICE


def test_transfer_checks_revocation_before_ownership(
    registry: CredentialRegistry,
) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.revoke_credential(ALICE, credential_id))
    with pytest.raises(CredentialRevoked):
        asyncio.run(registry.transfer_credential(BOB, credential_id, BOB))


def test_transfer_unknown_id_reports_not_found(registry: CredentialRegistry) -> None:
    with pytest.raises(CredentialNotFound):
        asyncio.run(registry.transfer_credential(ALICE, 42, BOB))
    assert asyncio.run(registry.get_credential_owner(42)) is None


def test_transfer_to_self_is_allowed(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.transfer_credential(ALICE, credential_id, ALICE))
    assert asyncio.run(registry.get_credential_owner(credential_id)) == ALICE


def test_transfer_keeps_uri_and_revocation(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry, ALICE, "ipfs://keep")
    asyncio.run(registry.transfer_credential(ALICE, credential_id, BOB))
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://keep"
    assert asyncio.run(registry.is_revoked(credential_id)) is False


# ---- update_credential_uri ----


def test_update_uri_by_owner(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.update_credential_uri(ALICE, credential_id, "ipfs://new"))
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://new"


def test_update_uri_allowed_after_revocation(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.revoke_credential(ALICE, credential_id))
    asyncio.run(registry.update_credential_uri(ALICE, credential_id, "ipfs://def"))
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://def"
    assert asyncio.run(registry.is_revoked(credential_id)) is True


@pytest.mark.parametrize("uri", ["", "x" * 257])
def test_update_uri_rejects_invalid_length(
    registry: CredentialRegistry, uri: str
) -> None:
    credential_id = _issue(registry, ALICE, "ipfs://abc")
    with pytest.raises(InvalidUri):
        asyncio.run(registry.update_credential_uri(ALICE, credential_id, uri))
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://abc"


def test_update_uri_by_non_owner_is_unauthorized(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)
    with pytest.raises(Unauthorized):
        asyncio.run(registry.update_credential_uri(BOB, credential_id, "ipfs://evil"))
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://abc"


def test_update_uri_unknown_id_is_not_found(registry: CredentialRegistry) -> None:
    with pytest.raises(CredentialNotFound):
        asyncio.run(registry.update_credential_uri(ALICE, 7, "ipfs://x"))


def test_update_uri_checks_ownership_before_length(
    registry: CredentialRegistry,
) -> None:
    credential_id = _issue(registry)
    with pytest.raises(Unauthorized):
        asyncio.run(registry.update_credential_uri(BOB, credential_id, ""))


def test_update_uri_after_transfer_belongs_to_new_owner(
    registry: CredentialRegistry,
) -> None:
    credential_id = _issue(registry)
    asyncio.run(registry.transfer_credential(ALICE, credential_id, BOB))
    with pytest.raises(Unauthorized):
        asyncio.run(registry.update_credential_uri(ALICE, credential_id, "ipfs://a"))
    asyncio.run(registry.update_credential_uri(BOB, credential_id, "ipfs://b"))
    assert asyncio.run(registry.get_credential_uri(credential_id)) == "ipfs://b"


# ---- read accessors ----


@pytest.mark.parametrize("credential_id", [0, -1, 2, 10_000])
def test_accessors_return_defaults_for_unknown_ids(
    registry: CredentialRegistry, credential_id: int
) -> None:
    _issue(registry)
    assert asyncio.run(registry.get_credential_owner(credential_id)) is None
    assert asyncio.run(registry.get_credential_uri(credential_id)) is None
    assert asyncio.run(registry.is_revoked(credential_id)) is False
    assert asyncio.run(registry.get_credential(credential_id)) is None


def test_last_credential_id_starts_at_zero(registry: CredentialRegistry) -> None:
    assert asyncio.run(registry.get_last_credential_id()) == 0


def test_get_credential_returns_snapshot(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry, ALICE, "ipfs://snap")
    asyncio.run(registry.revoke_credential(ALICE, credential_id))
    assert asyncio.run(registry.get_credential(credential_id)) == Credential(
        credential_id=credential_id, owner=ALICE, uri="ipfs://snap", revoked=True
    )


# ---- end-to-end scenario ----


def test_issue_revoke_transfer_update_scenario(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry, ALICE, "ipfs://abc")
    assert credential_id == 1

    asyncio.run(registry.revoke_credential(ALICE, 1))
    with pytest.raises(CredentialRevoked):
        asyncio.run(registry.transfer_credential(ALICE, 1, BOB))
    asyncio.run(registry.update_credential_uri(ALICE, 1, "ipfs://def"))

    assert asyncio.run(registry.get_credential_uri(1)) == "ipfs://def"
    assert asyncio.run(registry.is_revoked(1)) is True
    assert asyncio.run(registry.get_credential_owner(1)) == ALICE


# ---- serialization ----


def test_concurrent_issuance_allocates_distinct_ids(
    registry: CredentialRegistry,
) -> None:
    async def _issue_many() -> list[int]:
        return await asyncio.gather(
            *(registry.issue_credential(f"user-{n}", f"ipfs://{n}") for n in range(20))
        )

    ids = asyncio.run(_issue_many())
    assert sorted(ids) == list(range(1, 21))


def test_concurrent_revokes_succeed_exactly_once(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry)

    async def _revoke_twice() -> list[object]:
        return await asyncio.gather(
            registry.revoke_credential(ALICE, credential_id),
            registry.revoke_credential(ALICE, credential_id),
            return_exceptions=True,
        )

    results = asyncio.run(_revoke_twice())
    assert sum(isinstance(r, Credential) for r in results) == 1
    assert sum(isinstance(r, CredentialRevoked) for r in results) == 1


# ---- mutation results ----


def test_mutations_return_the_state_they_wrote(registry: CredentialRegistry) -> None:
    credential_id = _issue(registry, ALICE, "ipfs://abc")

    moved = asyncio.run(registry.transfer_credential(ALICE, credential_id, BOB))
    assert moved == Credential(credential_id, BOB, "ipfs://abc", False)

    edited = asyncio.run(registry.update_credential_uri(BOB, credential_id, "ipfs://x"))
    assert edited == Credential(credential_id, BOB, "ipfs://x", False)

    revoked = asyncio.run(registry.revoke_credential(BOB, credential_id))
    assert revoked == Credential(credential_id, BOB, "ipfs://x", True)
    assert revoked.valid is False


def test_long_principals_are_stored_verbatim(registry: CredentialRegistry) -> None:
    holder = "did:example:" + "h" * 1000
    credential_id = _issue(registry, holder)
    asyncio.run(registry.transfer_credential(holder, credential_id, holder + "-next"))
    assert asyncio.run(registry.get_credential_owner(credential_id)) == holder + "-next"


@pytest.mark.parametrize("credential_id", [2**31, 2**63, -(2**63) - 1])
def test_ids_beyond_storage_range_read_as_never_issued(
    registry: CredentialRegistry, credential_id: int
) -> None:
    _issue(registry)
    assert asyncio.run(registry.get_credential_owner(credential_id)) is None
    assert asyncio.run(registry.get_credential_uri(credential_id)) is None
    assert asyncio.run(registry.is_revoked(credential_id)) is False
    with pytest.raises(CredentialNotFound):
        asyncio.run(registry.transfer_credential(ALICE, credential_id, BOB))
