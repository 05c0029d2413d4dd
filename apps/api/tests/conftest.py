from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict

import pytest

from assistdesk.core.db import init_db
from assistdesk.modules.bookings.schemas import Caller
from assistdesk.modules.catalog.schemas import AssistanceTypeCreateIn
from assistdesk.modules.catalog.service import create_assistance_type


@pytest.fixture(autouse=True)
def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    # each test gets its own sqlite file; the engine cache is keyed by url
    path = tmp_path / "desk.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{path.as_posix()}")
    monkeypatch.setenv("ADMISSION_RETRY_ATTEMPTS", "5")
    monkeypatch.delenv("REJECT_DUPLICATE_REQUESTS", raising=False)
    init_db()
    return path


@pytest.fixture
def admin() -> Caller:
    return Caller(is_admin=True, character_id=None)


@pytest.fixture
def make_type() -> Callable[..., Dict[str, Any]]:
    def _make(name: str = "Escort", **kw: Any) -> Dict[str, Any]:
        return create_assistance_type(AssistanceTypeCreateIn(name=name, **kw))

    return _make
