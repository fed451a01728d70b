from __future__ import annotations

import json
from pathlib import Path

import pytest

from vault_updater.adapters.triggers.json_file import JsonTriggerFile


@pytest.fixture()
def trigger_path(tmp_path: Path) -> Path:
    return tmp_path / "letsencrypt" / "updated-certs.json"


def test_missing_file_means_nothing_pending(trigger_path: Path) -> None:
    assert JsonTriggerFile(trigger_path).load() == []


def test_add_creates_parent_and_writes_sorted_unique_json(trigger_path: Path) -> None:
    triggers = JsonTriggerFile(trigger_path)
    triggers.add("b.example.com")
    triggers.add("a.example.com")
    assert triggers.add("b.example.com") == ["a.example.com", "b.example.com"]
    assert trigger_path.read_text(encoding="utf-8") == '[\n  "a.example.com",\n  "b.example.com"\n]'
    assert not trigger_path.with_name(".updated-certs.json.tmp").exists()


def test_discard_keeps_domains_added_meanwhile(trigger_path: Path) -> None:
    trigger_path.parent.mkdir(parents=True)
    trigger_path.write_text(json.dumps(["a.example.com", "b.example.com", "c.example.com"]), encoding="utf-8")
    assert JsonTriggerFile(trigger_path).discard(["a.example.com", "c.example.com"]) == ["b.example.com"]
    assert json.loads(trigger_path.read_text(encoding="utf-8")) == ["b.example.com"]


@pytest.mark.parametrize("content", ["{not json", '{"a.example.com": true}', '"a.example.com"'])
def test_unusable_file_is_treated_as_empty(trigger_path: Path, content: str) -> None:
    trigger_path.parent.mkdir(parents=True)
    trigger_path.write_text(content, encoding="utf-8")
    triggers = JsonTriggerFile(trigger_path)
    assert triggers.load() == []
    assert triggers.add("a.example.com") == ["a.example.com"]


def test_load_deduplicates_hand_edited_files(trigger_path: Path) -> None:
    trigger_path.parent.mkdir(parents=True)
    trigger_path.write_text('["b", "a", "b"]', encoding="utf-8")
    assert JsonTriggerFile(trigger_path).load() == ["a", "b"]
