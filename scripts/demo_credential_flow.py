"""Demo: walk one credential through its lifecycle using FastAPI TestClient.

Alice issues a credential, revokes it, fails to transfer it to Bob,
and still edits its metadata URI afterwards.

Run with:
    python scripts/demo_credential_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from app.services import token_service

ALICE = "did:example:alice"
BOB = "did:example:bob"


def _auth(sub: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_service.create_access_token(sub=sub)}"}


def main() -> None:
    client = TestClient(app)
    alice, bob = _auth(ALICE), _auth(BOB)

    # ── Step 1: issue ───────────────────────────────────────────────
    r = client.post("/v1/credentials", json={"uri": "ipfs://abc"}, headers=alice)
    assert r.status_code == 201, r.text
    cid = r.json()["credential_id"]
    print(f"1. POST /v1/credentials            → {r.status_code}  id={cid}")

    # ── Step 2: Bob tries to revoke Alice's credential ──────────────
    r = client.post(f"/v1/credentials/{cid}/revoke", headers=bob)
    print(f"2. POST .../revoke (bob)           → {r.status_code}  {r.json()['detail']['code']}")

    # ── Step 3: Alice revokes ───────────────────────────────────────
    r = client.post(f"/v1/credentials/{cid}/revoke", headers=alice)
    print(f"3. POST .../revoke (alice)         → {r.status_code}  revoked={r.json()['revoked']}")

    # ── Step 4: transfer of a revoked credential ────────────────────
    r = client.post(
        f"/v1/credentials/{cid}/transfer", json={"recipient": BOB}, headers=alice
    )
    print(f"4. POST .../transfer → bob         → {r.status_code}  {r.json()['detail']['code']}")

    # ── Step 5: metadata stays editable after revocation ────────────
    r = client.put(f"/v1/credentials/{cid}/uri", json={"uri": "ipfs://def"}, headers=alice)
    print(f"5. PUT  .../uri                    → {r.status_code}  uri={r.json()['uri']}")

    # ── Step 6: public reads ────────────────────────────────────────
    r = client.get(f"/v1/credentials/{cid}/verify")
    body = r.json()
    print(
        f"6. GET  .../verify                 → {r.status_code}  "
        f"owner={body['owner']} revoked={body['revoked']} valid={body['valid']}"
    )
    r = client.get("/v1/credentials/last-id")
    print(f"7. GET  /v1/credentials/last-id    → {r.json()['last_credential_id']}")


if __name__ == "__main__":
    main()
