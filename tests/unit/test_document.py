from __future__ import annotations

import pytest

from vault_updater.domain.document import (
    EMPTY_DOCUMENT,
    MapNode,
    PatchRequest,
    ScalarNode,
    SequenceNode,
    get_in,
    set_in,
    sort_deep,
    split_path,
)
from vault_updater.domain.errors import PathConflict, ValidationError


def test_split_path_dotted_string() -> None:
    assert split_path("db.primary.password") == ("db", "primary", "password")


def test_split_path_sequence_keeps_literal_dots() -> None:
    assert split_path(["reverse_proxy_tls_certs", "example.com", "key"]) == (
        "reverse_proxy_tls_certs",
        "example.com",
        "key",
    )


@pytest.mark.parametrize("key", ["", ".a", "a.", "a..b"])
def test_split_path_rejects_empty_segments(key: str) -> None:
    with pytest.raises(ValidationError):
        split_path(key)


def test_split_path_rejects_empty_sequence() -> None:
    with pytest.raises(ValidationError):
        split_path([])


@pytest.mark.parametrize("key", [[""], ["a", ""], ["", "b"]])
def test_split_path_rejects_empty_sequence_segments(key: list[str]) -> None:
    with pytest.raises(ValidationError, match="empty segment"):
        split_path(key)


def test_patch_request_requires_string_value() -> None:
    with pytest.raises(ValidationError):
        PatchRequest(("a",), 5)  # type: ignore[arg-type]


def test_patch_request_requires_segments() -> None:
    with pytest.raises(ValidationError):
        PatchRequest((), "x")


def test_patch_request_under_prefixes_path() -> None:
    request = PatchRequest.from_key("db.password", "x", "!vault").under("__vault__")
    assert request == PatchRequest(("__vault__", "db", "password"), "x", "!vault")


def test_set_in_creates_intermediate_maps() -> None:
    tree = set_in(EMPTY_DOCUMENT, ["a", "b", "c"], ScalarNode("v"))
    assert get_in(tree, ["a", "b", "c"]) == ScalarNode("v")
    assert isinstance(get_in(tree, ["a", "b"]), MapNode)


def test_set_in_leaves_input_untouched() -> None:
    original = MapNode({"a": MapNode({"b": ScalarNode("old")})})
    updated = set_in(original, ["a", "b"], ScalarNode("new"))
    assert get_in(original, ["a", "b"]) == ScalarNode("old")
    assert get_in(updated, ["a", "b"]) == ScalarNode("new")


def test_set_in_replaces_existing_leaf_and_tag() -> None:
    tree = MapNode({"a": ScalarNode("1", "tag:yaml.org,2002:int")})
    updated = set_in(tree, ["a"], ScalarNode("secret", "!vault"))
    assert updated.entries["a"] == ScalarNode("secret", "!vault")


def test_set_in_replaces_a_mapping_with_a_leaf() -> None:
    tree = MapNode({"a": MapNode({"b": ScalarNode("x")})})
    assert set_in(tree, ["a"], ScalarNode("flat")).entries["a"] == ScalarNode("flat")


def test_set_in_conflict_on_scalar() -> None:
    tree = MapNode({"a": MapNode({"b": ScalarNode("x")})})
    with pytest.raises(PathConflict) as excinfo:
        set_in(tree, ["a", "b", "c"], ScalarNode("y"))
    assert excinfo.value.path == ("a", "b", "c")
    assert excinfo.value.position == 2
    assert str(excinfo.value) == "Cannot set a.b.c: a.b is not a mapping"


def test_set_in_conflict_on_sequence() -> None:
    tree = MapNode({"hosts": SequenceNode((ScalarNode("a"),))})
    with pytest.raises(PathConflict):
        set_in(tree, ["hosts", "0"], ScalarNode("b"))


def test_set_in_conflict_on_scalar_root() -> None:
    with pytest.raises(PathConflict) as excinfo:
        set_in(ScalarNode("plain"), ["a"], ScalarNode("b"))
    assert "<root>" in str(excinfo.value)


def test_get_in_missing_returns_none() -> None:
    tree = MapNode({"a": ScalarNode("x")})
    assert get_in(tree, ["b"]) is None
    assert get_in(tree, ["a", "b"]) is None


def test_sort_deep_orders_nested_maps_and_keeps_sequences() -> None:
    tree = MapNode(
        {
            "z": SequenceNode((ScalarNode("2"), ScalarNode("1"))),
            "a": MapNode({"y": ScalarNode("1"), "b": ScalarNode("2")}),
        }
    )
    ordered = sort_deep(tree)
    assert list(ordered.entries) == ["a", "z"]
    assert list(ordered.entries["a"].entries) == ["b", "y"]
    assert [item.value for item in ordered.entries["z"].items] == ["2", "1"]


def test_sort_deep_uses_code_point_order() -> None:
    ordered = sort_deep(MapNode({"b": ScalarNode("1"), "B": ScalarNode("2"), "_": ScalarNode("3")}))
    assert list(ordered.entries) == ["B", "_", "b"]


def test_scalar_style_is_not_part_of_equality() -> None:
    assert ScalarNode("x", style="'") == ScalarNode("x")


def test_map_node_entries_are_read_only() -> None:
    node = MapNode({"a": ScalarNode("1")})
    with pytest.raises(TypeError):
        node.entries["b"] = ScalarNode("2")  # type: ignore[index]
