"""Shared test fixtures for graphme.

Provides reusable fixtures for isolated settings and data directories,
sample identity objects, output state management, and running CLI
commands. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from graphme.auth.token_cache import TokenCache, TokenCacheEntry
from graphme.models import Account, AppConfiguration
from graphme.output import OutputFormat, OutputManager, reset_output, set_output


AUTHORITY = "https://login.example.com/t1"
CLIENT_ID = "c1"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate settings and the token cache to a temporary directory.

    Sets XDG_DATA_HOME to a subdirectory of tmp_path so that tests never
    touch a real token cache, clears all GRAPHME_* environment variables,
    and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("graphme.config._is_xdg_platform", lambda: True)

    for var in [
        "GRAPHME_SETTINGS",
        "GRAPHME_API_URL",
        "GRAPHME_TOKEN_CACHE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_settings(path: Path, **overrides: Any) -> Path:
    """Write an ``appsettings.json`` with test defaults to *path*."""
    data: dict[str, Any] = {
        "Instance": "https://login.example.com/",
        "TenantId": "t1",
        "ClientId": CLIENT_ID,
    }
    data.update(overrides)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Identity fixtures
# ---------------------------------------------------------------------------


def make_id_token(**claims: Any) -> str:
    """Build an unsigned JWT carrying *claims* (signature is not checked)."""
    defaults: dict[str, Any] = {
        "preferred_username": "alice@example.com",
        "oid": "oid-1",
        "tid": "t1",
    }
    defaults.update(claims)

    def _b64(obj: Any) -> str:
        raw = json.dumps(obj).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_b64({'alg': 'none'})}.{_b64(defaults)}.sig"


@pytest.fixture
def sample_config() -> AppConfiguration:
    """Settings for a test tenant ``t1`` and client ``c1``."""
    return AppConfiguration(
        Instance="https://login.example.com/",
        TenantId="t1",
        ClientId=CLIENT_ID,
    )


@pytest.fixture
def sample_account() -> Account:
    return Account(
        username="alice@example.com",
        home_account_id="oid-1.t1",
        environment="login.example.com",
        tenant_id="t1",
    )


def make_entry(account: Account, **kwargs: Any) -> TokenCacheEntry:
    """Create a cache entry for *account* that is valid for an hour by default."""
    defaults: dict[str, Any] = {
        "account": account,
        "client_id": CLIENT_ID,
        "authority": AUTHORITY,
        "access_token": "cached-at",
        "refresh_token": "cached-rt",
        "expires_on": datetime.now(timezone.utc) + timedelta(hours=1),
        "scopes": ["User.Read"],
    }
    defaults.update(kwargs)
    return TokenCacheEntry(**defaults)


@pytest.fixture
def token_cache(tmp_path: Path) -> TokenCache:
    """A token cache backed by a file under tmp_path."""
    return TokenCache(tmp_path / "cache" / "token_cache.json")


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def plain_output() -> OutputManager:
    """Install a PLAIN-format, colourless OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a PLAIN-format, quiet OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Set up JSON output for tests that check JSON-formatted output."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Factory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings_factory():
    """Return :func:`write_settings` for tests that need a settings file."""
    return write_settings


@pytest.fixture
def id_token_factory():
    """Return :func:`make_id_token`."""
    return make_id_token


@pytest.fixture
def entry_factory():
    """Return :func:`make_entry`."""
    return make_entry
