"""Tests for translation tables and artifacts."""

import json

import pytest

from idmigrate.models.record import RecordKind, TranslationEntry
from idmigrate.services.translation import (
    TranslationArtifactError,
    TranslationTable,
    write_translation_artifact,
)


def write_json(path, data):
    path.write_text(json.dumps(data))
    return path


def test_load_and_lookup(tmp_path):
    path = write_json(tmp_path / "users.json", [
        {"clerk": "user_a", "workos": "user_01"},
        {"clerk": "user_b", "workos": "user_02"},
    ])

    table = TranslationTable.load(path, RecordKind.USER)

    assert len(table) == 2
    assert table.lookup("user_a") == "user_01"
    assert "user_b" in table


def test_lookup_of_unknown_id_is_none(tmp_path):
    table = TranslationTable.load(write_json(tmp_path / "users.json", []), RecordKind.USER)
    assert table.lookup("user_missing") is None


def test_missing_artifact_fails(tmp_path):
    with pytest.raises(TranslationArtifactError, match="not found"):
        TranslationTable.load(tmp_path / "nope.json", RecordKind.USER)


def test_invalid_json_fails(tmp_path):
    path = tmp_path / "users.json"
    path.write_text('[{"clerk": "user_a",')
    with pytest.raises(TranslationArtifactError, match="not valid JSON"):
        TranslationTable.load(path, RecordKind.USER)


def test_non_array_fails(tmp_path):
    path = write_json(tmp_path / "users.json", {"clerk": "user_a", "workos": "user_01"})
    with pytest.raises(TranslationArtifactError, match="JSON array"):
        TranslationTable.load(path, RecordKind.USER)


@pytest.mark.parametrize("entry", [
    {"clerk": "user_a"},
    {"workos": "user_01"},
    {"clerk": "user_a", "workos": 7},
    "user_a",
    {},
])
def test_malformed_entries_fail(tmp_path, entry):
    path = write_json(tmp_path / "users.json", [{"clerk": "user_b", "workos": "user_02"}, entry])
    with pytest.raises(TranslationArtifactError, match="Entry 1"):
        TranslationTable.load(path, RecordKind.USER)


def test_conflicting_entries_fail(tmp_path):
    path = write_json(tmp_path / "users.json", [
        {"clerk": "user_a", "workos": "user_01"},
        {"clerk": "user_a", "workos": "user_02"},
    ])
    with pytest.raises(TranslationArtifactError, match="Conflicting"):
        TranslationTable.load(path, RecordKind.USER)


def test_repeated_identical_entries_are_accepted(tmp_path):
    path = write_json(tmp_path / "users.json", [
        {"clerk": "user_a", "workos": "user_01"},
        {"clerk": "user_a", "workos": "user_01"},
    ])
    assert len(TranslationTable.load(path, RecordKind.USER)) == 1


def test_many_sources_may_share_a_destination():
    table = TranslationTable(RecordKind.USER, [
        TranslationEntry("user_a", "user_01"),
        TranslationEntry("user_b", "user_01"),
    ])
    assert table.lookup("user_a") == table.lookup("user_b") == "user_01"


def test_written_artifact_can_be_loaded_with_custom_fields(tmp_path):
    path = tmp_path / "nested" / "orgs.json"
    entries = [TranslationEntry("org_a", "org_01"), TranslationEntry("org_b", "org_02")]

    write_translation_artifact(path, entries, source_field="source", destination_field="target")

    assert json.loads(path.read_text())[0] == {"source": "org_a", "target": "org_01"}
    table = TranslationTable.load(path, RecordKind.ORGANIZATION, "source", "target")
    assert len(table) == 2
    assert table.lookup("org_b") == "org_02"
