import pytest

from xyz.nxt3d.ecs.addresses import ZERO_ADDRESS
from xyz.nxt3d.ecs.resolve.matcher import (
    NamespaceMatcher,
    candidate_namespaces,
    namespace_path,
    path_segments,
)

A = "0x000000000000000000000000000000000000000A"
AB = "0x00000000000000000000000000000000000000AB"


@pytest.fixture
def matcher():
    return NamespaceMatcher()


class TestPaths:
    def test_namespace_path_stops_at_colon(self):
        assert namespace_path("eth.ecs.name-stars.starts:vitalik.eth") == (
            "eth.ecs.name-stars.starts"
        )

    def test_scope_prefix_is_stripped(self):
        assert path_segments("eth.ecs.name-stars.starts") == ["name-stars", "starts"]

    def test_unscoped_key(self):
        assert path_segments("a.b.c") == ["a", "b", "c"]

    @pytest.mark.parametrize("key", ["", "a..b", ".a", "a.", "eth.ecs", ":arg"])
    def test_unusable_paths(self, key):
        assert path_segments(key) is None

    def test_candidates_longest_first(self):
        assert list(candidate_namespaces("a.b.c")) == ["a.b.c", "a.b", "a"]


class TestMatcher:
    def test_most_specific_binding_wins(self, matcher):
        bindings = {"a": A, "a.b": AB}
        assert matcher.match("a.b.c", bindings) == AB

    def test_falls_back_to_shorter_prefix(self, matcher):
        bindings = {"a": A, "a.b": AB}
        assert matcher.match("a.x", bindings) == A

    def test_no_binding(self, matcher):
        bindings = {"a": A, "a.b": AB}
        assert matcher.match("z", bindings) == ZERO_ADDRESS

    def test_prefix_must_align_with_segments(self, matcher):
        assert matcher.match("ab.c", {"a": A}) == ZERO_ADDRESS

    def test_scoped_key_with_argument(self, matcher):
        bindings = {"name-stars": A}
        assert matcher.match("eth.ecs.name-stars.starts:vitalik.eth", bindings) == A

    def test_argument_never_matches(self, matcher):
        assert matcher.match("x:a.b", {"a": A, "a.b": AB}) == ZERO_ADDRESS

    def test_deterministic(self, matcher):
        bindings = {"a": A, "a.b": AB}
        results = {matcher.match("a.b.c.d", dict(bindings)) for _ in range(5)}
        assert results == {AB}

    def test_new_binding_only_affects_its_subtree(self, matcher):
        bindings = {"a": A}
        keys = ["a", "a.x", "a.x.y", "a.b", "a.b.c", "b", "z.a.b"]
        before = {key: matcher.match(key, bindings) for key in keys}

        bindings["a.b"] = AB
        after = {key: matcher.match(key, bindings) for key in keys}

        for key in keys:
            if key.split(".")[:2] == ["a", "b"]:
                assert after[key] == AB
            else:
                assert after[key] == before[key]

    def test_custom_scope(self):
        matcher = NamespaceMatcher(scope=("org", "example"))
        assert matcher.match("org.example.a", {"a": A}) == A
        assert matcher.match("eth.ecs.a", {"a": A}) == ZERO_ADDRESS
