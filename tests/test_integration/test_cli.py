"""Integration tests for the graphme command line.

Drive the real root Typer app through CliRunner and check exit codes and
output for each command. The protocol client's HTTP calls are patched at
``httpx.post`` and the API call at :func:`graphme.workflow.call_api`.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from graphme import __version__
from graphme.app import app, main
from graphme.auth.token_cache import TokenCache
from graphme.exceptions import ApiConnectionError, ApiError, DeserializationError
from graphme.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_RESPONSE_ERROR,
)
from graphme.models import UserProfile
from graphme.workflow import PROFILE_HEADER

MESSAGE = "To sign in, open https://example.com/devicelogin and enter ABCD1234."
PROFILE = UserProfile(id="1", display_name="A B", mail="a@b.com")


def _post(data: dict[str, object], status_code: int = 200) -> MagicMock:
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = data
    mock_response.text = json.dumps(data)
    mock_response.raise_for_status.return_value = None
    return mock_response


def _device_flow(id_token: str) -> list[MagicMock]:
    return [
        _post(
            {
                "device_code": "dev-123",
                "user_code": "ABCD1234",
                "verification_uri": "https://example.com/devicelogin",
                "interval": 1,
                "message": MESSAGE,
            }
        ),
        _post({"access_token": "TOK", "refresh_token": "rt", "id_token": id_token}),
    ]


@pytest.fixture()
def settings(isolated_config: Path, settings_factory) -> Path:
    """An ``appsettings.json`` in the working directory."""
    return settings_factory(isolated_config / "appsettings.json")


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobalOptions:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"graphme {__version__}" in result.output

    def test_help_lists_commands(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("interactive", "device-code", "accounts", "logout"):
            assert name in result.output


# ---------------------------------------------------------------------------
# device-code
# ---------------------------------------------------------------------------


class TestDeviceCodeCommand:
    def test_success(self, cli_runner, settings: Path, id_token_factory) -> None:
        with patch("graphme.auth.identity.httpx.post", side_effect=_device_flow(id_token_factory())), \
             patch("graphme.plugins.device_code.plugin.time.sleep"), \
             patch("graphme.workflow.call_api", return_value=PROFILE) as mock_call:
            result = cli_runner.invoke(app, ["--no-color", "device-code"])

        assert result.exit_code == 0, result.output
        token, base_url, _request = mock_call.call_args.args
        assert token == "TOK"
        assert base_url == "https://graph.microsoft.com/v1.0/"
        lines = result.stdout.splitlines()
        assert lines == [
            MESSAGE,
            "",
            "Hello alice@example.com",
            "",
            PROFILE_HEADER,
            "",
            "Id: 1",
            "Display Name: A B",
            "Email: a@b.com",
        ]

    def test_api_url_option(self, cli_runner, settings: Path, id_token_factory) -> None:
        with patch("graphme.auth.identity.httpx.post", side_effect=_device_flow(id_token_factory())), \
             patch("graphme.plugins.device_code.plugin.time.sleep"), \
             patch("graphme.workflow.call_api", return_value=PROFILE) as mock_call:
            result = cli_runner.invoke(
                app, ["--api-url", "https://graph.example.com/beta/", "device-code"]
            )
        assert result.exit_code == 0, result.output
        assert mock_call.call_args.args[1] == "https://graph.example.com/beta/"

    def test_settings_option(
        self, cli_runner, isolated_config: Path, settings_factory, id_token_factory
    ) -> None:
        path = settings_factory(isolated_config / "conf" / "other.json", ClientId="other-client")
        with patch(
            "graphme.auth.identity.httpx.post", side_effect=_device_flow(id_token_factory())
        ) as mock_post, \
             patch("graphme.plugins.device_code.plugin.time.sleep"), \
             patch("graphme.workflow.call_api", return_value=PROFILE):
            result = cli_runner.invoke(app, ["--settings", str(path), "device-code"])
        assert result.exit_code == 0, result.output
        assert mock_post.call_args_list[0].kwargs["data"]["client_id"] == "other-client"

    def test_missing_settings_file(self, cli_runner, isolated_config: Path) -> None:
        with patch("graphme.auth.identity.httpx.post") as mock_post:
            result = cli_runner.invoke(app, ["--no-color", "device-code"])
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert "Settings file not found" in result.output
        mock_post.assert_not_called()

    def test_missing_client_id(self, cli_runner, isolated_config: Path) -> None:
        (isolated_config / "appsettings.json").write_text(
            json.dumps({"Instance": "https://login.example.com/", "TenantId": "t1"})
        )
        with patch("graphme.auth.identity.httpx.post") as mock_post:
            result = cli_runner.invoke(app, ["--no-color", "device-code"])
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert "ClientId" in result.output
        mock_post.assert_not_called()

    def test_declined(self, cli_runner, settings: Path) -> None:
        responses = [
            _post({"device_code": "d", "user_code": "u", "verification_uri": "https://x"}),
            _post({"error": "authorization_declined"}, status_code=400),
        ]
        with patch("graphme.auth.identity.httpx.post", side_effect=responses), \
             patch("graphme.plugins.device_code.plugin.time.sleep"), \
             patch("graphme.workflow.call_api") as mock_call:
            result = cli_runner.invoke(app, ["--no-color", "device-code"])
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "declined" in result.output
        mock_call.assert_not_called()

    @pytest.mark.parametrize(
        "exc, code",
        [
            (ApiError("HTTP 500: Internal", status_code=500), EXIT_API_ERROR),
            (ApiConnectionError("Request failed: refused"), EXIT_CONNECTION_ERROR),
            (DeserializationError("Response is missing required field(s): mail"), EXIT_RESPONSE_ERROR),
        ],
    )
    def test_api_failures(
        self, cli_runner, settings: Path, id_token_factory, exc: Exception, code: int
    ) -> None:
        with patch("graphme.auth.identity.httpx.post", side_effect=_device_flow(id_token_factory())), \
             patch("graphme.plugins.device_code.plugin.time.sleep"), \
             patch("graphme.workflow.call_api", side_effect=exc):
            result = cli_runner.invoke(app, ["--no-color", "device-code"])
        assert result.exit_code == code
        assert str(exc) in result.output
        assert PROFILE_HEADER not in result.output


# ---------------------------------------------------------------------------
# interactive
# ---------------------------------------------------------------------------


class TestInteractiveCommand:
    def test_requires_tty(self, cli_runner, settings: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "interactive"])
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "TTY" in result.output

    def test_cached_token_skips_browser(
        self, cli_runner, settings: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        with patch("graphme.workflow.call_api", return_value=PROFILE) as mock_call:
            result = cli_runner.invoke(app, ["interactive"])
        assert result.exit_code == 0, result.output
        assert mock_call.call_args.args[0] == "cached-at"
        assert "Hello" not in result.output
        assert "Id: 1" in result.stdout


# ---------------------------------------------------------------------------
# accounts / logout
# ---------------------------------------------------------------------------


class TestAccountCommands:
    def test_accounts_empty(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "accounts"])
        assert result.exit_code == 0
        assert "No cached accounts." in result.output

    def test_accounts_lists_without_tokens(
        self, cli_runner, isolated_config: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        result = cli_runner.invoke(app, ["--plain", "accounts"])
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0] == "Username\tTenant\tAuthority\tClient ID\tAccess Token"
        assert lines[1].startswith("alice@example.com\tt1\thttps://login.example.com/t1\tc1\tvalid")
        assert "cached-at" not in result.output
        assert "cached-rt" not in result.output

    def test_accounts_json(
        self, cli_runner, isolated_config: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        result = cli_runner.invoke(app, ["--json", "accounts"])
        assert json.loads(result.stdout)[0]["Username"] == "alice@example.com"

    def test_logout_force(
        self, cli_runner, isolated_config: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        result = cli_runner.invoke(app, ["--no-color", "--force", "logout"])
        assert result.exit_code == 0
        assert "Removed 1 cached account(s)." in result.output
        assert TokenCache().load() == []

    def test_logout_confirm_declined(
        self, cli_runner, isolated_config: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        result = cli_runner.invoke(app, ["--no-color", "logout", "alice@example.com"], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled." in result.output
        assert len(TokenCache().load()) == 1

    def test_logout_confirm_accepted(
        self, cli_runner, isolated_config: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        result = cli_runner.invoke(app, ["--no-color", "logout", "alice@example.com"], input="y\n")
        assert result.exit_code == 0
        assert TokenCache().load() == []

    def test_logout_unknown_user(
        self, cli_runner, isolated_config: Path, sample_account, entry_factory
    ) -> None:
        TokenCache().save(entry_factory(sample_account))
        result = cli_runner.invoke(app, ["--no-color", "--force", "logout", "bob@example.com"])
        assert result.exit_code == 0
        assert 'No cached tokens for "bob@example.com".' in result.output
        assert len(TokenCache().load()) == 1


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    def test_unexpected_error_writes_crash_log(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("graphme.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr("graphme.app.app", MagicMock(side_effect=RuntimeError("boom")))

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == EXIT_GENERIC_FAILURE
        logs = list((isolated_config / "data" / "graphme" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: boom" in logs[0].read_text()

    def test_graphme_error_maps_to_exit_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("graphme.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(
            "graphme.app.app", MagicMock(side_effect=ApiError("HTTP 503", status_code=503))
        )
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_API_ERROR

    def test_keyboard_interrupt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("graphme.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr("graphme.app.app", MagicMock(side_effect=KeyboardInterrupt))
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 130
