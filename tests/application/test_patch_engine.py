from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from vault_updater.adapters.codec.yaml_codec import YamlDocumentCodec
from vault_updater.application.patch import PatchEngine, apply_to_tree
from vault_updater.domain.document import (
    VAULT_TAG,
    MapNode,
    PatchRequest,
    ScalarNode,
    SequenceNode,
    get_in,
    sort_deep,
)
from vault_updater.domain.errors import ParseError, PathConflict

CODEC = YamlDocumentCodec()
ENGINE = PatchEngine(CODEC)

KEY = st.text(alphabet="abcxyzAB_019", min_size=1, max_size=5)
TEXT = st.text(alphabet=st.characters(min_codepoint=32, max_codepoint=126), max_size=30)
TAG = st.sampled_from([None, VAULT_TAG])
SCALAR = st.builds(ScalarNode, TEXT)
TREE = st.recursive(
    SCALAR,
    lambda children: st.one_of(
        st.dictionaries(KEY, children, max_size=4).map(MapNode),
        st.lists(children, max_size=3).map(lambda items: SequenceNode(tuple(items))),
    ),
    max_leaves=12,
)
DOCUMENT = st.dictionaries(KEY, TREE, max_size=4).map(MapNode)
PATH = st.lists(KEY, min_size=1, max_size=3).map(tuple)
REQUEST = st.builds(PatchRequest, PATH, TEXT, TAG)
LINE = st.text(alphabet=st.one_of(st.characters(min_codepoint=32, max_codepoint=126), st.just("\t")), max_size=20)
MULTILINE = st.lists(LINE, min_size=2, max_size=5).map("\n".join)


def _prefix_free(requests: list[PatchRequest]) -> list[PatchRequest]:
    """Drop requests whose path is a strict prefix of another request path."""

    paths = {request.path for request in requests}
    return [
        request
        for request in requests
        if not any(other != request.path and other[: len(request.path)] == request.path for other in paths)
    ]


def test_new_keys_are_inserted_in_sorted_order() -> None:
    out = ENGINE.apply("", [PatchRequest(("a", "c"), "y"), PatchRequest(("a", "b"), "x")])
    assert out == "a:\n  b: x\n  c: y\n"


def test_existing_document_is_sorted_and_updated() -> None:
    document = "zeta: 1\nalpha:\n  second: two\n  first: one\n"
    out = ENGINE.apply(document, [PatchRequest.from_key("alpha.first", "uno")])
    assert out == "alpha:\n  first: uno\n  second: two\nzeta: 1\n"


def test_missing_document_starts_empty() -> None:
    assert ENGINE.apply(None, [PatchRequest.from_key("a", "b")]) == "a: b\n"


@pytest.mark.parametrize("document", ["---\n", "---\n# vault\n", "~\n"])
def test_null_document_starts_empty(document: str) -> None:
    assert ENGINE.apply(document, [PatchRequest.from_key("a", "b")]) == "a: b\n"


def test_vault_tag_and_literal_block() -> None:
    ciphertext = "$ANSIBLE_VAULT;1.1;AES256\n6162636465\n"
    out = ENGINE.apply("", [PatchRequest(("__vault__", "db_password"), ciphertext, VAULT_TAG)])
    assert out == "__vault__:\n  db_password: !vault |\n    $ANSIBLE_VAULT;1.1;AES256\n    6162636465\n"


def test_untouched_vault_values_survive() -> None:
    document = "__vault__:\n  old: !vault |\n    $ANSIBLE_VAULT;1.1;AES256\n    3031\n"
    out = ENGINE.apply(document, [PatchRequest(("__vault__", "new"), "pem", None)])
    node = get_in(CODEC.parse(out), ("__vault__", "old"))
    assert node == ScalarNode("$ANSIBLE_VAULT;1.1;AES256\n3031\n", VAULT_TAG)


def test_later_request_wins() -> None:
    out = ENGINE.apply("", [PatchRequest.from_key("a", "first"), PatchRequest.from_key("a", "second")])
    assert out == "a: second\n"


def test_string_values_that_look_like_numbers_stay_strings() -> None:
    out = ENGINE.apply("port: 8080\n", [PatchRequest.from_key("pin", "0042")])
    assert out == "pin: '0042'\nport: 8080\n"


def test_key_quoting_is_kept_and_new_numeric_keys_are_quoted() -> None:
    out = ENGINE.apply("'1': a\n2: b\n", [PatchRequest.from_key("8080", "x")])
    assert out == "'1': a\n2: b\n'8080': x\n"
    assert list(CODEC.parse(out).entries) == ["1", "2", "8080"]


def test_multi_line_value_with_tabs_and_trailing_spaces_stays_literal() -> None:
    out = ENGINE.apply("", [PatchRequest(("pem",), "line one \n\tline two\n", VAULT_TAG)])
    assert out == "pem: !vault |\n  line one \n  \tline two\n"


def test_conflict_leaves_nothing_half_applied() -> None:
    document = "a:\n  b: scalar\n"
    with pytest.raises(PathConflict):
        ENGINE.apply(document, [PatchRequest.from_key("z", "ok"), PatchRequest.from_key("a.b.c", "nope")])


def test_conflict_with_sequence() -> None:
    with pytest.raises(PathConflict):
        ENGINE.apply("hosts:\n- one\n", [PatchRequest.from_key("hosts.first", "x")])


def test_malformed_document() -> None:
    with pytest.raises(ParseError):
        ENGINE.apply("a: [unclosed\n", [PatchRequest.from_key("a", "b")])


@given(DOCUMENT)
@settings(max_examples=60)
def test_empty_batch_only_sorts(tree: MapNode) -> None:
    text = CODEC.serialize(tree)
    assert ENGINE.apply(text, []) == CODEC.serialize(sort_deep(tree))


@given(DOCUMENT, st.lists(REQUEST, max_size=6))
@settings(max_examples=60)
def test_apply_is_idempotent_on_its_output(tree: MapNode, requests: list[PatchRequest]) -> None:
    requests = _prefix_free(requests)
    try:
        once = ENGINE.apply(CODEC.serialize(tree), requests)
    except PathConflict:
        return
    assert ENGINE.apply(once, []) == once
    assert ENGINE.apply(once, requests) == once


@given(st.lists(REQUEST, min_size=1, max_size=8))
@settings(max_examples=80)
def test_every_requested_path_resolves(requests: list[PatchRequest]) -> None:
    requests = _prefix_free(requests)
    result = CODEC.parse(ENGINE.apply("", requests))
    expected = {request.path: request for request in requests}
    for path, request in expected.items():
        assert get_in(result, path) == ScalarNode(request.value, request.tag)


@given(DOCUMENT, st.lists(REQUEST, max_size=5))
@settings(max_examples=60)
def test_tree_patch_never_mutates_input(tree: MapNode, requests: list[PatchRequest]) -> None:
    snapshot = CODEC.serialize(tree)
    try:
        apply_to_tree(tree, requests)
    except PathConflict:
        pass
    assert CODEC.serialize(tree) == snapshot


@given(MULTILINE)
@settings(max_examples=80)
def test_multi_line_values_are_always_literal_blocks(value: str) -> None:
    out = ENGINE.apply("", [PatchRequest(("pem",), value)])
    assert out.startswith("pem: |")
    assert CODEC.parse(out).entries["pem"].value == value
