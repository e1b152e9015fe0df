"""SQLAlchemy table definitions.

Maps the frozen AuthorizationCode dataclass to its persistence row.  The
raw code is never stored; ``code_hash`` is the lookup key.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Float, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from authcode.db.engine import Base


class AuthorizationCodeRow(Base):
    __tablename__ = "authorization_codes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    code_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    client_id: Mapped[str] = mapped_column(String(128), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    redirect_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    scopes: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=[])
    transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    nonce: Mapped[str | None] = mapped_column(String(255), nullable=True)
    code_challenge: Mapped[str | None] = mapped_column(String(128), nullable=True)
    code_challenge_method: Mapped[str | None] = mapped_column(
        String(16), nullable=True
    )
    request_parameters: Mapped[dict[str, str]] = mapped_column(
        JSONB, nullable=False, default=dict
    )
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    # Indexed for the sweeper's range delete
    expires_at: Mapped[float] = mapped_column(Float, nullable=False, index=True)
