"""Tests for the admin polling command-line watcher."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import httpx
import pytest

from scripts import poll_admin
from taxease.core.config import ApiSettings, AppSettings, SecuritySettings, StorageSettings
from taxease.main import create_app


class HistoryHandler:
    def __init__(self, status: str) -> None:
        self.status = status
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        assert request.headers["Authorization"] == "Bearer cli-token"
        return httpx.Response(
            200, json={"success": True, "data": [{"id": 5, "status": self.status}]}
        )


def _app(tmp_path: Path, handler: HistoryHandler):
    settings = AppSettings(
        api=ApiSettings(base_url="https://backend.test"),
        storage=StorageSettings(db_path=str(tmp_path / "cli.db")),
        security=SecuritySettings(token_secret=None),
    )
    return create_app(settings, transport=httpx.MockTransport(handler))


def test_main_requires_token(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("TAXEASE_ACCESS_TOKEN", raising=False)

    exit_code = poll_admin.main(["--once"])

    assert exit_code == poll_admin.EXIT_USAGE_ERROR
    assert "token is required" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_single_cycle_prints_status_change(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    handler = HistoryHandler("submitted")
    app = _app(tmp_path, handler)
    assert app.vault is None

    await poll_admin.run("cli-token", once=True, app=app)
    handler.status = "rejected"
    app.poller.cached_form_history = None
    await poll_admin.run("cli-token", once=True, clear_form=None, app=app)

    output = capsys.readouterr().out
    assert output.count("Check complete") == 2
    assert "ADMIN_STATUS_CHANGE Application Status Updated" in output
    assert "requires attention" in output
    assert handler.calls == 2


@pytest.mark.asyncio
async def test_clear_form_resets_markers(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    handler = HistoryHandler("submitted")
    app = _app(tmp_path, handler)
    await app.persistence.store_status_marker("5", "under_review")

    await poll_admin.run("cli-token", once=True, clear_form="5", app=app)

    output = capsys.readouterr().out
    assert "Cleared stored markers for form 5" in output
    assert "Application Status Updated" not in output
    assert await app.persistence.get_status_marker("5") == "submitted"
