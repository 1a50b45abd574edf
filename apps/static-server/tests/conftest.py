"""Test bootstrap for static-server."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

APP_ROOT = Path(__file__).resolve().parents[1]
app_root_str = str(APP_ROOT)
if app_root_str not in sys.path:
    sys.path.insert(0, app_root_str)

from starlette.testclient import TestClient  # noqa: E402

from static_server.app import build_app  # noqa: E402
from static_server.config import build_mock_rules  # noqa: E402
from static_server.models import ServerConfig  # noqa: E402


@pytest.fixture()
def site(tmp_path: Path) -> Path:
    """A served root with a nested page, a listing-only folder and a secret next to it."""

    root = tmp_path / "site"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "index.html").write_text("<h1>docs</h1>", encoding="utf-8")
    (root / "files").mkdir()
    (root / "files" / "a.txt").write_text("alpha", encoding="utf-8")
    (root / "files" / "nested").mkdir()
    (root / "styles.css").write_text("body {}", encoding="utf-8")
    (root / "README").write_text("no extension", encoding="utf-8")
    (root / ".env").write_text("DOTFILE=1", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("TOP SECRET", encoding="utf-8")
    (tmp_path / "site2").mkdir()
    (tmp_path / "site2" / "leak.txt").write_text("SIBLING", encoding="utf-8")
    return root


@pytest.fixture()
def mock_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "mocks"
    directory.mkdir()
    return directory


@pytest.fixture()
def make_config(site: Path, mock_dir: Path) -> Callable[..., ServerConfig]:
    def _make(*, mocks: dict[str, str] | None = None, **overrides: Any) -> ServerConfig:
        values: dict[str, Any] = {"root_dir": site.resolve(), "mock_dir": mock_dir.resolve()}
        if mocks:
            values["mock_rules"] = build_mock_rules(mocks)
        values.update(overrides)
        return ServerConfig(**values)

    return _make


@pytest.fixture()
def make_client(make_config: Callable[..., ServerConfig]) -> Callable[..., TestClient]:
    def _make(**overrides: Any) -> TestClient:
        return TestClient(build_app(make_config(**overrides)))

    return _make
