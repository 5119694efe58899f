from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from attributor.domain.errors import AdapterFailure, InvalidResumeToken
from attributor.domain.model import AttributionRecord, Source, SyncCheckpoint, SyncStatus
from attributor.domain.sync import SyncAllResult, SyncResult
from attributor.ui import cli

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from attributor.domain.sync import SyncOptions


def _result(source: Source, *, completed: bool = True) -> SyncResult:
    return SyncResult(
        source=source,
        processed=4,
        processed_total=4,
        skipped=0,
        total=4,
        resume_token=None,
        completed=completed,
        status=SyncStatus.COMPLETED if completed else SyncStatus.PAUSED,
    )


class _StubReports:
    def __init__(self, records: dict[int, AttributionRecord] | None = None) -> None:
        self.records = records or {}

    def attribution_for(self, contact_id: int) -> AttributionRecord | None:
        return self.records.get(contact_id)

    def sync_status(self, source: Source) -> SyncCheckpoint:
        return SyncCheckpoint(source=source, status=SyncStatus.PAUSED, processed_count=7)


@pytest.fixture(autouse=True)
def reset_cancel() -> Iterator[None]:
    cli.CANCEL.clear()
    yield
    cli.CANCEL.clear()


def test_sync_passes_sources_and_budget(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_sync(
        sources: Iterable[Source] | None = None, *, options: SyncOptions | None = None
    ) -> SyncAllResult:
        captured["sources"] = sources
        captured["options"] = options
        return SyncAllResult(results={Source.CRM: _result(Source.CRM)})

    monkeypatch.setattr(cli, "sync_sources", fake_sync)

    cli.main(
        ["sync", "--source", "CRM", "--source", "forms", "--limit", "5", "--timeout-ms", "100"]
    )

    options = captured["options"]
    assert captured["sources"] == [Source.CRM, Source.FORMS]
    assert options is not None
    assert (options.limit, options.timeout_ms) == (5, 100)  # type: ignore[attr-defined]
    assert options.cancel is cli.CANCEL  # type: ignore[attr-defined]
    printed = json.loads(capsys.readouterr().out)
    assert printed["results"]["crm"]["processed"] == 4
    assert printed["failures"] == {}


def test_sync_failure_exits_with_resume_token(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    failure = AdapterFailure("forms feed request failed", source=Source.FORMS)
    failure.resume_token = "token-1"

    def fake_sync(
        sources: Iterable[Source] | None = None, *, options: SyncOptions | None = None
    ) -> SyncAllResult:
        _ = sources, options
        return SyncAllResult(failures={Source.FORMS: failure})

    monkeypatch.setattr(cli, "sync_sources", fake_sync)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync"])

    assert excinfo.value.code == 1
    printed = json.loads(capsys.readouterr().out)
    assert printed["failures"]["forms"] == {
        "error": "forms feed request failed",
        "resume_token": "token-1",
    }


def test_sync_rejects_unknown_source() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "--source", "erp"])

    assert excinfo.value.code == 2


def test_sync_rejects_zero_limit() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "--limit", "0"])

    assert excinfo.value.code == 2


def test_resume_forwards_token(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_resume(token: str, *, options: SyncOptions | None = None) -> SyncResult:
        captured["token"] = token
        captured["options"] = options
        return _result(Source.SCHEDULER)

    monkeypatch.setattr(cli, "resume_source_sync", fake_resume)

    cli.main(["resume", "abc.def", "--limit", "2"])

    assert captured["token"] == "abc.def"
    assert captured["options"].limit == 2  # type: ignore[attr-defined]
    assert json.loads(capsys.readouterr().out)["source"] == "scheduler"


def test_invalid_resume_token_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_resume(token: str, *, options: SyncOptions | None = None) -> SyncResult:
        _ = options
        raise InvalidResumeToken(f"Stale resume token: {token}")

    monkeypatch.setattr(cli, "resume_source_sync", fake_resume)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["resume", "stale"])

    assert excinfo.value.code == 1


def test_status_lists_every_source(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "build_reporting_service", _StubReports)

    cli.main(["status"])

    printed = json.loads(capsys.readouterr().out)
    assert [item["source"] for item in printed] == ["crm", "scheduler", "forms"]
    assert {item["status"] for item in printed} == {"paused"}
    assert {item["processed_count"] for item in printed} == {7}


def test_report_for_contact(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    record = AttributionRecord(
        contact_id=3,
        credit_distribution={Source.FORMS: 1.0},
        converted=True,
        days_to_conversion=5,
    )
    monkeypatch.setattr(cli, "build_reporting_service", lambda: _StubReports({3: record}))

    cli.main(["report", "--contact-id", "3"])

    printed = json.loads(capsys.readouterr().out)
    assert printed["credit_distribution"] == {"forms": 1.0}
    assert printed["days_to_conversion"] == 5


def test_report_for_unknown_contact_exits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "build_reporting_service", _StubReports)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["report", "--contact-id", "42"])

    assert excinfo.value.code == 1


def test_sigint_cancels_then_exits() -> None:
    cli.sigint_handler(2, None)

    assert cli.CANCEL.is_set()
    with pytest.raises(SystemExit) as excinfo:
        cli.sigint_handler(2, None)
    assert excinfo.value.code == 130
