from __future__ import annotations

from pathlib import Path

import pytest

from assistdesk.core.config import get_settings
from assistdesk.core.db import resolve_sqlite_path
from assistdesk.core.errors import TransientConflictError
from assistdesk.core.locks import StaleWriteError, run_with_retry


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ADMISSION_RETRY_ATTEMPTS", raising=False)
    s = get_settings()
    assert s.admission_retry_attempts == 3
    assert s.reject_duplicate_requests is True


@pytest.mark.parametrize("raw", ["0", "false", "off", "no"])
def test_duplicate_flag_can_be_disabled(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("REJECT_DUPLICATE_REQUESTS", raw)
    assert get_settings().reject_duplicate_requests is False


def test_retry_attempts_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ADMISSION_RETRY_ATTEMPTS", "0")
    with pytest.raises(RuntimeError, match="ADMISSION_RETRY_ATTEMPTS"):
        get_settings()


def test_lost_races_surface_as_transient_conflict(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ADMISSION_RETRY_ATTEMPTS", "2")
    calls = []

    def always_stale() -> None:
        calls.append(1)
        raise StaleWriteError("b1")

    with pytest.raises(TransientConflictError) as exc:
        run_with_retry("transition", always_stale, backoff_seconds=0)
    assert len(calls) == 2
    assert exc.value.retryable
    assert exc.value.status_code == 503


def test_retry_recovers_after_a_lost_race() -> None:
    calls = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) == 1:
            raise StaleWriteError("b1")
        return "ok"

    assert run_with_retry("transition", flaky, backoff_seconds=0) == "ok"
    assert len(calls) == 2


def test_sqlite_paths_resolve_against_the_repo_root() -> None:
    repo_root = Path(__file__).resolve().parents[3]
    assert resolve_sqlite_path("sqlite:///./data/app.db") == (repo_root / "data" / "app.db").resolve()
    assert resolve_sqlite_path("sqlite:////var/lib/desk.db") == Path("/var/lib/desk.db")
    assert resolve_sqlite_path("sqlite:///C:/desk/app.db") == Path("C:/desk/app.db")
    assert resolve_sqlite_path("postgresql://db/desk") is None
