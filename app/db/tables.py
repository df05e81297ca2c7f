"""SQLAlchemy table definitions for the credential registry.

The three registry maps share one row per credential; the counter
lives in a single-row table whose row lock serializes transactions.
PgCredentialStore converts between these rows and plain values.

Ids are BIGINT; principals are TEXT because token subjects and
transfer recipients have no length limit.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base
from app.models.credential import URI_MAX_LENGTH

# Primary key of the only registry_state row.
REGISTRY_STATE_ID = 1

# Range of a PostgreSQL BIGINT; ids outside it were never issued.
CREDENTIAL_ID_MIN = -(2**63)
CREDENTIAL_ID_MAX = 2**63 - 1


class CredentialRow(Base):
    __tablename__ = "credentials"

    # Allocated by the registry counter, never by a sequence.
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    owner: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    uri: Mapped[str] = mapped_column(String(URI_MAX_LENGTH), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class RegistryStateRow(Base):
    __tablename__ = "registry_state"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    last_credential_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
