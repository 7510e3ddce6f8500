"""Longest-prefix matching of credential keys against namespace bindings.

A credential key such as `eth.ecs.name-stars.starts:vitalik.eth` carries a
namespace path before the first `:`. Everything after the colon is an argument
for the resolver and never takes part in matching. The path is split on `.`,
the `eth.ecs` scope prefix is dropped when present, and the longest run of
leading segments that is bound to a resolver wins.
"""

from typing import Iterator, List, Mapping, Optional, Sequence

from xyz.nxt3d.ecs.addresses import ZERO_ADDRESS

DEFAULT_SCOPE = ("eth", "ecs")
ARGUMENT_DELIMITER = ":"
SEGMENT_DELIMITER = "."


def namespace_path(key: str) -> str:
    """Return the part of a key that names a namespace."""
    return key.split(ARGUMENT_DELIMITER, 1)[0]


def path_segments(key: str, scope: Sequence[str] = DEFAULT_SCOPE) -> Optional[List[str]]:
    """Split a key's namespace path into segments with the scope prefix removed.

    Returns None when the path cannot name a namespace, i.e. when any segment
    is empty or nothing is left after the scope prefix.
    """
    segments = namespace_path(key).split(SEGMENT_DELIMITER)
    if scope and segments[: len(scope)] == list(scope):
        segments = segments[len(scope) :]
    if not segments or any(segment == "" for segment in segments):
        return None
    return segments


def candidate_namespaces(key: str, scope: Sequence[str] = DEFAULT_SCOPE) -> Iterator[str]:
    """Yield candidate namespace paths for a key, most specific first."""
    segments = path_segments(key, scope)
    if segments is None:
        return
    for length in range(len(segments), 0, -1):
        yield SEGMENT_DELIMITER.join(segments[:length])


class NamespaceMatcher:
    """
    Selects the resolver answering a credential key.

    The same key against the same bindings always selects the same resolver,
    and a binding for `p` only changes the answer for keys whose leading
    segments are exactly `p`.
    """

    def __init__(self, scope: Sequence[str] = DEFAULT_SCOPE) -> None:
        self.scope = tuple(scope)

    def match_namespace(self, key: str, bindings: Mapping[str, str]) -> Optional[str]:
        """Return the most specific bound namespace path for `key`, if any."""
        for candidate in candidate_namespaces(key, self.scope):
            if candidate in bindings:
                return candidate
        return None

    def match(self, key: str, bindings: Mapping[str, str]) -> str:
        """Return the resolver for `key`, or the zero address when nothing matches."""
        namespace = self.match_namespace(key, bindings)
        if namespace is None:
            return ZERO_ADDRESS
        return bindings[namespace]
