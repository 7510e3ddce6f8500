"""Credential records held by local (on-chain state) credential resolvers."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from xyz.nxt3d.ecs.model.base import Base, timestamp


class CredentialRecord(Base):
    """A credential value stored by a resolver for one identifier and key."""

    __tablename__ = "credential_records"

    resolver: Mapped[str] = mapped_column(String(42), primary_key=True)
    identifier_hash: Mapped[str] = mapped_column(String(66), primary_key=True)
    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(String(4096), nullable=False)
    updated_at: Mapped[timestamp]
