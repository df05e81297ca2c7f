from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.
    user_id is the token's `sub` claim and is the identity recorded
    as a credential's owner.
    """

    user_id: str
