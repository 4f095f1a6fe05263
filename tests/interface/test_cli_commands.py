"""Tests for CLI commands: items, reviews, dashboard, params, category, config and serve."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from retainly.domain.constants import DEFAULT_WEIGHTS
from retainly.interface.cli import app

runner = CliRunner()


@pytest.fixture
def db(tmp_path, mock_home):
    return str(tmp_path / "cli.db")


def invoke(db, *args):
    return runner.invoke(app, ["--db", db, *args])


def write_params(path, weights=DEFAULT_WEIGHTS, retention=0.9):
    path.write_text(json.dumps({"w": list(weights), "desiredRetention": retention}))
    return str(path)


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition" in result.stdout
    for command in ("add", "review", "status", "due", "params", "category"):
        assert command in result.stdout


# --- Items and reviews ---


def test_add_and_review(db):
    result = invoke(db, "add", "Chopin Op. 10 No. 1", "--source", "Henle")
    assert result.exit_code == 0
    assert "Added item #1: Chopin Op. 10 No. 1" in result.output

    result = invoke(db, "review", "1", "good")
    assert result.exit_code == 0
    assert "rated good" in result.output
    assert "stability:  3.71 days" in result.output
    assert "next review in 4 day(s)" in result.output


def test_review_accepts_numeric_rating(db):
    invoke(db, "add", "thing")
    result = invoke(db, "review", "1", "1")
    assert result.exit_code == 0
    assert "rated again" in result.output


def test_review_invalid_rating(db):
    invoke(db, "add", "thing")
    result = invoke(db, "review", "1", "perfect")
    assert result.exit_code == 2
    assert "Unknown rating" in result.output


def test_review_unknown_item(db):
    result = invoke(db, "review", "42", "good")
    assert result.exit_code == 1
    assert "Item 42 not found" in result.output


def test_add_to_unknown_category(db):
    result = invoke(db, "add", "thing", "--category", "7")
    assert result.exit_code == 1
    assert "Category 7 not found" in result.output


def test_preview_lists_every_rating(db):
    invoke(db, "add", "thing")
    result = invoke(db, "preview", "1")
    assert result.exit_code == 0
    for name in ("again", "hard", "good", "easy"):
        assert name in result.output
    assert "good   -> 4 day(s)" in result.output


def test_history(db):
    invoke(db, "add", "thing")
    assert "Never reviewed." in invoke(db, "history", "1").output

    invoke(db, "review", "1", "hard")
    result = invoke(db, "history", "1")
    assert result.exit_code == 0
    assert "hard" in result.output


# --- Dashboard ---


def test_status_empty(db):
    result = invoke(db, "status")
    assert result.exit_code == 0
    assert "No items yet" in result.output


def test_status_and_due_json(db):
    invoke(db, "add", "reviewed")
    invoke(db, "add", "fresh")
    invoke(db, "review", "1", "good")

    result = invoke(db, "status", "--json")
    assert result.exit_code == 0
    entries = json.loads(result.stdout)
    assert [(e["id"], e["urgency"]) for e in entries] == [(2, "overdue"), (1, "not-due")]

    due = json.loads(invoke(db, "due", "--json").stdout)
    assert [e["title"] for e in due] == ["fresh"]


def test_due_nothing(db):
    invoke(db, "add", "thing")
    invoke(db, "review", "1", "easy")
    result = invoke(db, "due")
    assert "Nothing due" in result.output


# --- Params ---


def test_params_show_defaults(db):
    result = invoke(db, "params", "show")
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["w"] == list(DEFAULT_WEIGHTS)
    assert payload["effectiveRetention"] == 0.9


def test_params_validate_ok(tmp_path):
    result = runner.invoke(app, ["params", "validate", write_params(tmp_path / "p.json")])
    assert result.exit_code == 0
    assert "OK: 17 weights" in result.output


def test_params_validate_wrong_count(tmp_path):
    path = write_params(tmp_path / "p.json", weights=DEFAULT_WEIGHTS[:16])
    result = runner.invoke(app, ["params", "validate", path])
    assert result.exit_code == 1
    assert "Invalid" in result.output


def test_params_validate_missing_file(tmp_path):
    result = runner.invoke(app, ["params", "validate", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "Cannot read" in result.output


# --- Category ---


def test_category_with_weights_override(db, tmp_path):
    weights = list(DEFAULT_WEIGHTS)
    weights[2] = 10.0
    params = write_params(tmp_path / "custom.json", weights=weights)

    result = invoke(db, "category", "add", "Piano", "--params", params)
    assert result.exit_code == 0
    assert "Added category #1: Piano" in result.output

    invoke(db, "add", "Etude", "--category", "1")
    result = invoke(db, "review", "1", "good")
    assert "stability:  10.00 days" in result.output


def test_category_set_retention_then_clear(db):
    invoke(db, "category", "add", "Exam")

    result = invoke(db, "category", "set", "1", "--retention", "0.95")
    assert result.exit_code == 0
    shown = json.loads(invoke(db, "params", "show", "--category", "1").stdout)
    assert shown["effectiveRetention"] == 0.95

    invoke(db, "category", "set", "1", "--clear")
    shown = json.loads(invoke(db, "params", "show", "--category", "1").stdout)
    assert shown["effectiveRetention"] == 0.9


def test_category_rejects_bad_retention(db):
    result = invoke(db, "category", "add", "Exam", "--retention", "0.99")
    assert result.exit_code == 1
    assert "Invalid retention" in result.output


def test_category_set_unknown(db):
    result = invoke(db, "category", "set", "9", "--retention", "0.8")
    assert result.exit_code == 1
    assert "Category 9 not found" in result.output


# --- Config ---


def test_config_show(db, monkeypatch):
    monkeypatch.setenv("RETAINLY_DESIRED_RETENTION", "0.85")
    result = invoke(db, "config", "show")
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["desired_retention"] == 0.85
    assert data["db_path"].endswith("cli.db")


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run, db):
    result = invoke(db, "serve", "--port", "9999", "--host", "0.0.0.0")
    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "retainly.server:app", host="0.0.0.0", port=9999, reload=False
    )


@patch("uvicorn.run")
def test_serve_uses_config_defaults(mock_run, db):
    invoke(db, "serve")
    _, kwargs = mock_run.call_args
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 8777


def test_config_set_retention_reaches_scheduling(db):
    invoke(db, "add", "thing")

    result = invoke(db, "config", "set-retention", "0.8")
    assert result.exit_code == 0
    assert "Global desired retention set to 0.8" in result.output

    assert json.loads(invoke(db, "params", "show").stdout)["effectiveRetention"] == 0.8
    assert "next review in 9 day(s)" in invoke(db, "review", "1", "good").output


def test_config_set_retention_rejects_out_of_range(db):
    result = invoke(db, "config", "set-retention", "0.5")
    assert result.exit_code == 1
    assert "between 0.7 and 0.97" in result.output


# --- Lifecycle ---


def test_archive_unarchive(db):
    invoke(db, "add", "keep")
    invoke(db, "add", "shelve")

    result = invoke(db, "archive", "2")
    assert result.exit_code == 0
    assert "Archived item #2: shelve" in result.output

    titles = [e["title"] for e in json.loads(invoke(db, "status", "--json").stdout)]
    assert titles == ["keep"]
    assert json.loads(invoke(db, "archived", "--json").stdout) == [{"id": 2, "title": "shelve"}]

    assert invoke(db, "unarchive", "2").exit_code == 0
    assert "No archived items." in invoke(db, "archived").output


def test_archive_unknown_item(db):
    result = invoke(db, "archive", "8")
    assert result.exit_code == 1
    assert "Item 8 not found" in result.output


def test_delete_requires_confirmation(db):
    invoke(db, "add", "thing")

    result = runner.invoke(app, ["--db", db, "delete", "1"], input="n\n")
    assert result.exit_code == 1
    assert len(json.loads(invoke(db, "status", "--json").stdout)) == 1

    result = invoke(db, "delete", "1", "--yes")
    assert result.exit_code == 0
    assert "Deleted item #1" in result.output
    assert json.loads(invoke(db, "status", "--json").stdout) == []


def test_category_rename(db):
    invoke(db, "category", "add", "Langs")
    invoke(db, "add", "hola", "--category", "1")

    result = invoke(db, "category", "rename", "1", "Languages")
    assert result.exit_code == 0

    entries = json.loads(invoke(db, "status", "--json").stdout)
    assert entries[0]["category"] == "Languages"


def test_category_delete_archiving_items(db):
    invoke(db, "category", "add", "Old")
    invoke(db, "add", "member", "--category", "1")
    invoke(db, "add", "outsider")

    result = invoke(db, "category", "delete", "1", "--strategy", "archive")
    assert result.exit_code == 0

    assert [e["title"] for e in json.loads(invoke(db, "status", "--json").stdout)] == ["outsider"]
    assert [i["title"] for i in json.loads(invoke(db, "archived", "--json").stdout)] == ["member"]


def test_category_delete_unknown(db):
    result = invoke(db, "category", "delete", "4")
    assert result.exit_code == 1
    assert "Category 4 not found" in result.output
