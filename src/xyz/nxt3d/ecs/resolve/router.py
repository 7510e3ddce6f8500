"""Wildcard resolution entry point for credential names.

A query name such as `vitalik.eth.name.name-stars.eth` is resolved with
`text(node, key)`. The router extracts the identity left of the marker label,
matches the key against the namespace bindings, and asks the selected
credential resolver. When the resolver needs remote data the call is completed
through the RemoteReadProtocol.

Root namespaces bind through their registry entry. Deeper paths such as
`name-stars.starts` bind in the router's own table, and only the owner of the
root namespace may write them.
"""

import json
import logging
from typing import Dict, Mapping, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector
from sqlalchemy import select

from xyz.nxt3d.ecs.addresses import ZERO_ADDRESS, resolver_or_none
from xyz.nxt3d.ecs.app.metrics import MetricsClient, NoOpMetricsClient
from xyz.nxt3d.ecs.ccip.protocol import RemoteReadProtocol
from xyz.nxt3d.ecs.errors import ErrorKind, ResolutionError
from xyz.nxt3d.ecs.model.events import EventKind, record_event
from xyz.nxt3d.ecs.model.namespaces import ResolverBinding
from xyz.nxt3d.ecs.registry.commitments import validate_label
from xyz.nxt3d.ecs.registry.namespaces import NamespaceRegistry
from xyz.nxt3d.ecs.resolve.matcher import NamespaceMatcher
from xyz.nxt3d.ecs.resolvers.base import (
    ERC165_INTERFACE_ID,
    EXTENDED_RESOLVER_INTERFACE_ID,
    METADATA_INTERFACE_ID,
    TEXT_INTERFACE_ID,
    CredentialResolver,
)
from xyz.nxt3d.ecs.wire.names import (
    ADDRESS_MARKER,
    DEFAULT_SUFFIX,
    NAME_MARKER,
    encode_name,
    extract_identifier,
    iter_labels,
)

logger = logging.getLogger(__name__)

TEXT_SELECTOR = function_signature_to_4byte_selector("text(bytes32,string)")
RESOLVER_INFO_KEY = "resolver-info"


class CredentialRouter:
    """
    Routes `text` lookups on credential names to credential resolvers.

    Args:
        registry: Namespace registry holding root bindings
        resolvers: Credential resolvers by checksum address
        protocol: Completes suspended remote reads
        matcher: Key matching policy
        markers: Marker labels tried in order when extracting the identity
        suffix: Label expected right before the terminator
        metrics_client: Counts resolution outcomes
    """

    def __init__(
        self,
        registry: NamespaceRegistry,
        resolvers: Mapping[str, CredentialResolver],
        protocol: RemoteReadProtocol,
        matcher: Optional[NamespaceMatcher] = None,
        markers: Sequence[bytes] = (NAME_MARKER, ADDRESS_MARKER),
        suffix: bytes = DEFAULT_SUFFIX,
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        self.registry = registry
        self.resolvers = dict(resolvers)
        self.protocol = protocol
        self.matcher = matcher or NamespaceMatcher()
        self.markers = tuple(markers)
        self.suffix = suffix
        self.metrics_client = metrics_client or NoOpMetricsClient()

    def supports_interface(self, interface_id: bytes) -> bool:
        return interface_id in (
            ERC165_INTERFACE_ID,
            EXTENDED_RESOLVER_INTERFACE_ID,
            TEXT_INTERFACE_ID,
            METADATA_INTERFACE_ID,
        )

    def binding_hash(self, namespace: str) -> bytes:
        """Namehash of a dotted namespace path, most specific label first."""
        return self.registry.namespace_hash(".".join(reversed(namespace.split("."))))

    async def resolve(self, name: bytes, data: bytes) -> bytes:
        """Resolve an encoded `text(bytes32,string)` call for a wire name.

        Returns:
            `abi.encode(string)` of the credential value

        Raises:
            ResolutionError: unsupported_operation for any other selector
        """
        selector = data[:4]
        if selector != TEXT_SELECTOR:
            raise ResolutionError.unsupported_operation(selector)
        try:
            _, key = decode(["bytes32", "string"], data[4:])
        except (DecodingError, UnicodeDecodeError) as e:
            raise ResolutionError.malformed_encoding(4) from e
        value = await self.resolve_text(name, key)
        return encode(["string"], [value])

    def extract_identifier(self, name: bytes) -> bytes:
        """Try each marker in order and return the first identifier found."""
        for marker in self.markers:
            try:
                return extract_identifier(name, marker, self.suffix)
            except ResolutionError as e:
                if e.kind != ErrorKind.no_match_found:
                    raise
        raise ResolutionError.no_match_found(b"|".join(self.markers))

    async def resolve_text(self, name: bytes, key: str) -> str:
        if key == RESOLVER_INFO_KEY:
            info = await self.resolver_metadata(name)
            if info is not None:
                return info

        identifier = self.extract_identifier(name)
        bindings = await self.bindings()
        resolver_address = self.matcher.match(key, bindings)
        if resolver_address == ZERO_ADDRESS:
            logger.debug(f"no namespace bound for key {key!r}")
            self.metrics_client.increment(
                "ecs.resolve.outcome", 1, tag_dict={"result": "unbound"}
            )
            return ""

        resolver = self.resolvers.get(resolver_address)
        if resolver is None:
            raise ResolutionError.resolver_not_found(resolver_address)

        outcome = await resolver.credential(identifier, key)
        value = await self.protocol.complete(resolver, outcome)
        self.metrics_client.increment(
            "ecs.resolve.outcome",
            1,
            tag_dict={"result": "value" if value else "empty"},
        )
        return value

    async def resolver_metadata(self, name: bytes) -> Optional[str]:
        """JSON metadata for `<label>.<parent name>`, or None for other names."""
        labels = [label for _, label in iter_labels(name)]
        parent = [label for _, label in iter_labels(encode_name(self.registry.parent_name))]
        if len(labels) != len(parent) + 1 or labels[1:] != parent:
            return None
        try:
            label = labels[0].decode("utf-8")
        except UnicodeDecodeError:
            # Registered labels are always valid UTF-8.
            return ""
        entry = await self.registry.get_namespace(label)
        if entry is None or entry.is_expired(self.registry.clock()):
            return ""
        return json.dumps(
            {
                "label": entry.label,
                "resolver": entry.resolver or ZERO_ADDRESS,
                "resolverUpdated": entry.resolver_updated_at,
            }
        )

    async def bindings(self) -> Dict[str, str]:
        """Namespace path to resolver for every live binding."""
        namespaces = await self.registry.active_namespaces()
        bindings = {
            label: entry.resolver
            for label, entry in namespaces.items()
            if entry.resolver is not None
        }
        async with self.registry.session_maker() as session:
            rows = (await session.scalars(select(ResolverBinding))).all()
        for row in rows:
            root = namespaces.get(row.root_label)
            if root is not None and root.created_at == row.root_created_at:
                bindings[row.namespace] = row.resolver
        return bindings

    async def register_resolver(
        self, caller: str, namespace: str, resolver: Optional[str]
    ) -> None:
        """Bind `namespace` to `resolver`; the zero address removes the binding.

        Single labels are delegated to the registry. Deeper paths are written
        here after checking that `caller` owns the root label.
        """
        segments = namespace.split(".")
        for segment in segments:
            validate_label(segment)

        if len(segments) == 1:
            await self.registry.set_resolver(namespace, caller, resolver)
            return

        resolver = resolver_or_none(resolver)
        node = self.binding_hash(namespace)
        node_hex = "0x" + node.hex()
        now = self.registry.clock()
        async with self.registry.session_maker() as session:
            async with session.begin():
                root = await self.registry.authorize(session, segments[0], caller, now)
                binding = await session.get(ResolverBinding, node_hex)

                if resolver is None:
                    if binding is not None:
                        record_event(
                            session,
                            EventKind.resolver_removed,
                            namespace,
                            node,
                            now,
                            address=binding.resolver,
                        )
                        await session.delete(binding)
                    return

                if binding is None:
                    binding = ResolverBinding(
                        namespace_hash=node_hex,
                        namespace=namespace,
                        root_label=segments[0],
                    )
                    session.add(binding)
                binding.resolver = resolver
                binding.root_created_at = root.created_at
                binding.updated_at = now
                record_event(
                    session,
                    EventKind.resolver_registered,
                    namespace,
                    node,
                    now,
                    address=resolver,
                )
