from __future__ import annotations

from dataclasses import dataclass

# Inclusive bounds on a credential's metadata URI, in characters.
URI_MIN_LENGTH = 1
URI_MAX_LENGTH = 256


@dataclass(frozen=True, slots=True)
class Credential:
    """Point-in-time view of one issued credential.

    The registry never stores this object; owner, uri and revocation
    live in separate maps.  A snapshot is assembled on read.
    """

    credential_id: int
    owner: str
    uri: str
    revoked: bool = False

    @property
    def valid(self) -> bool:
        """True while the credential can still be trusted (not revoked)."""
        return not self.revoked
