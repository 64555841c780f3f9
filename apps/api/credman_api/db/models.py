"""SQLAlchemy ORM models for the credential manager."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import TEXT, TIMESTAMP, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Organization(Base):
    """Tenant boundary. Pre-provisioned externally, read-only here."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    vat_number: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    sap_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
    )


class User(Base):
    """User identity record.

    subject_id comes from upstream identity verification and is immutable
    once the row exists.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    subject_id: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    email: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    first_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
    )


class UserOrganization(Base):
    """Membership: the (user, organization) pairing."""

    __tablename__ = "user_organizations"

    user_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    organization_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (Index("idx_user_organizations_org", "organization_id"),)


class Credential(Base):
    """Client credential scoped to one organization and owned by its creator.

    client_secret holds the AEAD ciphertext blob, never the plaintext.
    """

    __tablename__ = "credentials"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    client_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    client_secret: Mapped[str] = mapped_column(TEXT, nullable=False)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    organization_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("organizations.id"), nullable=False
    )
    created_by_user_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("client_id", name="uq_credentials_client_id"),
        Index("idx_credentials_org_creator", "organization_id", "created_by_user_id"),
    )
