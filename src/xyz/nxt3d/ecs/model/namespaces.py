"""Namespace registry data models.

Provides SQLAlchemy models for namespace admission (commitments), the
registered namespaces themselves, and the router's sub-namespace resolver
bindings. Timestamps are unix seconds so expiry comparisons stay integer math.
"""

from typing import Optional

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from xyz.nxt3d.ecs.model.base import Base, address, bytes32hex, str255, str512, timestamp


class Commitment(Base):
    """Phase one of a namespace registration.

    Only the digest is stored; the label, owner and secret stay private until
    the registration is revealed.
    """

    __tablename__ = "commitments"

    commitment: Mapped[str] = mapped_column(String(66), primary_key=True)
    created_at: Mapped[timestamp]


class Namespace(Base):
    """A registered namespace label and its resolver.

    Keyed by the namehash of `<label>.<parent name>`. A null resolver marks a
    namespace whose binding has been removed.
    """

    __tablename__ = "namespaces"

    namespace_hash: Mapped[str] = mapped_column(String(66), primary_key=True)
    label: Mapped[str255]
    owner: Mapped[address]
    resolver: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    expires_at: Mapped[timestamp]
    resolver_updated_at: Mapped[timestamp]
    created_at: Mapped[timestamp]

    __table_args__ = (
        Index("idx_namespaces_label", "label", unique=True),
        Index("idx_namespaces_resolver", "resolver"),
    )


class ResolverBinding(Base):
    """Resolver bound to a sub-namespace path such as `name-stars.reviews`.

    Root labels bind through Namespace.resolver; this table holds the deeper
    paths the router can match more specifically. `root_created_at` pins the
    binding to one registration of the root label, so a later registration of
    the same label does not inherit it.
    """

    __tablename__ = "credential_resolver_bindings"

    namespace_hash: Mapped[bytes32hex] = mapped_column(primary_key=True)
    namespace: Mapped[str512]
    root_label: Mapped[str255]
    resolver: Mapped[address]
    root_created_at: Mapped[timestamp]
    updated_at: Mapped[timestamp]

    __table_args__ = (
        Index("idx_bindings_namespace", "namespace", unique=True),
        Index("idx_bindings_root_label", "root_label"),
    )
