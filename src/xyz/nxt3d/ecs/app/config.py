"""
Configuration Module for the ECS Resolution Service

Settings are loaded from environment variables through pydantic-settings, and
shared resources are handed to request handlers through typed aiohttp AppKeys.

Key configuration areas include:
- Service networking, database and monitoring
- Namespace registry rules (parent name, commitment window, registration length)
- Credential key matching (scope prefix, identity markers)
- Remote read gateways (timeouts, retries, trusted signing keys)
- Credential resolver deployments
"""

import json
from typing import Annotated, Dict, Final, List, Literal, Optional
import logging
from aiohttp import ClientSession, web
from jwcrypto import jwk
from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    PostgresDsn,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    AsyncSession,
)

from xyz.nxt3d.ecs.addresses import ZERO_ADDRESS
from xyz.nxt3d.ecs.app.metrics import MetricsClient
from xyz.nxt3d.ecs.registry.namespaces import NamespaceRegistry
from xyz.nxt3d.ecs.resolve.router import CredentialRouter

logger = logging.getLogger(__name__)


KNOWN_REGISTRY_ADDRESSES: Dict[int, str] = {
    1: ZERO_ADDRESS,
    11155111: "0x016BfbF42131004401ABdfe208F17A1620faB742",
}


class ResolverDeployment(BaseModel):
    """
    A credential resolver served by this deployment.

    `local` resolvers answer from stored records written by `controller`.
    `offchain` resolvers read `mapping(...)` storage at `base_slot` of `target`
    on another chain through the gateways in `urls`.
    """

    kind: Literal["local", "offchain"]
    address: str
    controller: Optional[str] = None
    target: Optional[str] = None
    base_slot: int = 0
    urls: List[str] = list()

    @model_validator(mode="after")
    def check_kind_fields(self) -> "ResolverDeployment":
        if self.kind == "local" and self.controller is None:
            raise ValueError("local resolvers require a controller")
        if self.kind == "offchain" and (self.target is None or not self.urls):
            raise ValueError("offchain resolvers require a target and gateway urls")
        return self


class Settings(BaseSettings):
    """
    Application settings for the ECS resolution service.

    Environment variables map onto fields by name. The database connection
    string can be set with either PG_DSN or DATABASE_URL.
    """

    model_config = SettingsConfigDict(arbitrary_types_allowed=True)

    debug: bool = False
    """
    Enable debug mode for verbose logging.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=5200)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    pg_dsn: PostgresDsn = Field(
        "postgresql+asyncpg://postgres:password@db/ecs",
        validation_alias=AliasChoices("pg_dsn", "database_url"),
    )  # type: ignore
    """
    PostgreSQL connection string for database access.
    Set with PG_DSN or DATABASE_URL environment variables.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    statsd_prefix: str = "ecs"

    metrics_backend: Literal["telegraf", "none"] = "telegraf"
    """
    Metrics backend, 'telegraf' or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    chain_id: int = 11155111
    """Chain the namespace registry is deployed on."""

    registry_addresses: Dict[int, str] = KNOWN_REGISTRY_ADDRESSES
    """
    Registry contract address per chain id, as JSON.
    Set with REGISTRY_ADDRESSES environment variable.
    """

    parent_name: str = "ecs.eth"
    """Name under which namespace labels are registered."""

    credential_key_prefix: str = "eth.ecs"
    """Scope prefix stripped from credential keys before matching."""

    identifier_markers: Annotated[List[str], NoDecode] = ["name", "addr"]
    """
    Marker labels tried in order when extracting the identity from a name.
    Set with IDENTIFIER_MARKERS environment variable as comma-separated values.
    """

    min_commitment_age: int = 60
    """Seconds a commitment must wait before it can be revealed."""

    max_commitment_age: int = 86400
    """Seconds after which an unrevealed commitment expires."""

    registration_duration: int = 31536000
    """Default registration length in seconds (365 days)."""

    gateway_timeout: float = 10.0
    """Total seconds allowed for one gateway HTTP request."""

    gateway_attempts: int = 2
    """Attempts per gateway URL while it answers with a 5xx status."""

    gateway_signing_keys: Annotated[jwk.JWKSet, NoDecode] = jwk.JWKSet()
    """
    Public keys of trusted gateways. Can be set to a JWKSet object or a path to
    a JSON file containing keys.
    Set with GATEWAY_SIGNING_KEYS environment variable.
    """

    resolver_deployments: Annotated[List[ResolverDeployment], NoDecode] = list()
    """
    Credential resolvers served by this deployment. Can be set to a list or a
    path to a JSON file.
    Set with RESOLVER_DEPLOYMENTS environment variable.
    """

    @property
    def registry_address(self) -> str:
        """
        Registry address on the configured chain.

        Raises:
            ValueError: If the registry is not deployed on that chain
        """
        address = self.registry_addresses.get(self.chain_id, ZERO_ADDRESS)
        if address == ZERO_ADDRESS:
            raise ValueError(f"ECS Registry not deployed on chain {self.chain_id}")
        return address

    @field_validator("identifier_markers", mode="before")
    @classmethod
    def decode_identifier_markers(cls, v) -> List[str]:
        if isinstance(v, str):
            return [marker.strip() for marker in v.split(",") if marker.strip()]
        return v

    @field_validator("gateway_signing_keys", mode="before")
    @classmethod
    def decode_gateway_signing_keys(cls, v) -> jwk.JWKSet:
        """
        Accept either an existing JWKSet or a file path to a JSON JWK Set.

        Raises:
            ValueError: If the input is neither a JWKSet nor a valid file path
        """
        if isinstance(v, jwk.JWKSet):
            return v
        elif isinstance(v, str):
            with open(v) as fd:
                data = fd.read()
                return jwk.JWKSet.from_json(data)
        raise ValueError(
            "gateway_signing_keys must be a JWKSet object or a valid JSON file path"
        )

    @field_validator("resolver_deployments", mode="before")
    @classmethod
    def decode_resolver_deployments(cls, v):
        if isinstance(v, str):
            with open(v) as fd:
                return json.load(fd)
        return v


SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

DatabaseAppKey: Final = web.AppKey("database", AsyncEngine)
"""AppKey for accessing the SQLAlchemy async database engine"""

DatabaseSessionMakerAppKey: Final = web.AppKey(
    "database_session_maker", async_sessionmaker[AsyncSession]
)
"""AppKey for accessing the SQLAlchemy async session factory"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for the metrics client"""

NamespaceRegistryAppKey: Final = web.AppKey("namespace_registry", NamespaceRegistry)
"""AppKey for the namespace registry"""

CredentialRouterAppKey: Final = web.AppKey("credential_router", CredentialRouter)
"""AppKey for the credential router"""
