import json
from io import StringIO

import pytest
from rich.console import Console
from typer.testing import CliRunner

from conftest import record_session
from lifewrap.app import build_application
from lifewrap.cli.commands.journal import JournalExitCode
from lifewrap.cli.main import create_app
from lifewrap.models import PeriodType
from lifewrap.services.storage import StorageError

runner = CliRunner()


@pytest.fixture
def cli(settings, store, engine):
    console = Console(file=StringIO(), width=120)
    return create_app(
        console=console,
        application_factory=lambda c: build_application(settings, c, store=store, engine=engine),
    )


def test_summarize_session_then_show_it_as_json(cli, store):
    session_id, _ = record_session(store, chunk_texts=[["Hello world"]])

    generated = runner.invoke(cli, ["summarize-session", str(session_id)])
    shown = runner.invoke(cli, ["show-summary", "--session", str(session_id), "--json"])

    assert generated.exit_code == JournalExitCode.SUCCESS
    assert shown.exit_code == JournalExitCode.SUCCESS
    payload = json.loads(shown.stdout)
    assert payload["session_id"] == str(session_id)
    assert payload["text"] == "Summary: Hello world"
    assert payload["period_type"] == "session"


def test_empty_session_exits_with_invalid_input(cli, store):
    session_id, _ = record_session(store, chunk_texts=[[" "]])

    result = runner.invoke(cli, ["summarize-session", str(session_id)])

    assert result.exit_code == JournalExitCode.INVALID_INPUT


def test_rollup_day_builds_missing_session_summaries(cli, store, engine):
    record_session(store, chunk_texts=[["Walked the dog"]])

    result = runner.invoke(cli, ["rollup", "day", "2024-03-06", "--json"])

    assert result.exit_code == JournalExitCode.SUCCESS
    payload = json.loads(result.stdout)
    assert payload["text"] == "• Summary: Walked the dog"
    assert payload["engine_tier"] == "rollup"
    assert len(engine.session_calls) == 1


def test_rollup_rejects_unknown_level(cli):
    result = runner.invoke(cli, ["rollup", "fortnight", "2024-03-06"])

    assert result.exit_code == JournalExitCode.INVALID_INPUT


def test_rollup_of_an_empty_period_is_not_found(cli):
    result = runner.invoke(cli, ["rollup", "week", "2024-03-06"])

    assert result.exit_code == JournalExitCode.NOT_FOUND


def test_year_wrap_and_status(cli, store, engine):
    session_id, _ = record_session(store)
    runner.invoke(cli, ["summarize-session", str(session_id)])

    wrapped = runner.invoke(cli, ["year-wrap", "2024", "--json"])
    status = runner.invoke(cli, ["wrap-status", "2024", "--json"])

    assert wrapped.exit_code == JournalExitCode.SUCCESS
    assert json.loads(wrapped.stdout)["period_type"] == PeriodType.YEAR_WRAP.value
    assert len(engine.year_wrap_calls) == 1
    payload = json.loads(status.stdout)
    assert payload["exists"] is True
    assert payload["new_sessions"] == 0
    assert payload["stale"] is False


def test_wrap_status_without_a_wrap(cli):
    result = runner.invoke(cli, ["wrap-status", "2023", "--json"])

    assert json.loads(result.stdout) == {
        "year": 2023,
        "exists": False,
        "generated_at": None,
        "new_sessions": 0,
        "stale": False,
    }


def test_append_notes_requires_a_summary(cli, store):
    session_id, _ = record_session(store)

    result = runner.invoke(cli, ["append-notes", str(session_id), "call the vet"])

    assert result.exit_code == JournalExitCode.NOT_FOUND


def test_show_summary_needs_a_selector(cli):
    assert runner.invoke(cli, ["show-summary"]).exit_code == JournalExitCode.INVALID_INPUT
    assert runner.invoke(cli, ["show-summary", "--level", "day", "--date", "2024-03-06"]).exit_code == (
        JournalExitCode.NOT_FOUND
    )


def test_append_notes_reports_storage_failures(cli, store, monkeypatch):
    session_id, _ = record_session(store)

    async def unavailable(session_id):
        raise StorageError("connection refused")

    monkeypatch.setattr(store, "fetch_summary_for_session", unavailable)

    result = runner.invoke(cli, ["append-notes", str(session_id), "call the vet"])

    assert result.exit_code == JournalExitCode.STORAGE_ERROR
