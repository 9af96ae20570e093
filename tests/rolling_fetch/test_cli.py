"""Tests for the RollingFetch CLI: fetch and show-config.

Tests verify:
- Results table and success summary
- Exit codes for failed transfers and bad configuration
- Bodies written to --output-dir
- Effective config rendering
"""

import json
import os

import httpx
import pytest
from typer.testing import CliRunner

from RollingFetch import cli
from RollingFetch.config import DEFAULT_USER_AGENT
from RollingFetch.transport import HttpTransport

runner = CliRunner()


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/broken":
        return httpx.Response(500, content=b"oops")
    return httpx.Response(200, content=f"body:{request.url.path}".encode())


@pytest.fixture(autouse=True)
def mocked_network(monkeypatch):
    """Route every CLI transfer through an httpx.MockTransport."""
    for name in list(os.environ):
        if name.startswith("ROLLINGFETCH_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr(
        cli, "_TRANSPORT_FACTORY", lambda: HttpTransport(httpx.MockTransport(_handler))
    )


class TestFetchCommand:
    """Tests for 'fetch' command."""

    def test_fetch_reports_every_url(self):
        """fetch should print a results row per URL and a success summary."""
        result = runner.invoke(
            cli.app,
            ["fetch", "https://example.org/a", "https://example.org/b", "-w", "1"],
        )

        assert result.exit_code == 0, result.output
        assert "RollingFetch Results" in result.output
        assert "Succeeded: 2/2" in result.output

    def test_fetch_exits_nonzero_on_failed_transfer(self):
        """A 500 response is reported and makes the command exit with 1."""
        result = runner.invoke(
            cli.app,
            ["fetch", "https://example.org/a", "https://example.org/broken"],
        )

        assert result.exit_code == 1
        assert "500" in result.output
        assert "Succeeded: 1/2" in result.output

    def test_fetch_writes_bodies_to_output_dir(self, tmp_path):
        """--output-dir streams each body into a numbered file."""
        out = tmp_path / "bodies"
        result = runner.invoke(
            cli.app,
            ["fetch", "https://example.org/a", "https://example.org/b", "-o", str(out)],
        )

        assert result.exit_code == 0, result.output
        assert (out / "0000.body").read_bytes() == b"body:/a"
        assert (out / "0001.body").read_bytes() == b"body:/b"

    def test_fetch_rejects_invalid_window(self):
        """A non-positive window is a configuration error."""
        result = runner.invoke(cli.app, ["fetch", "https://example.org/a", "-w", "0"])

        assert result.exit_code == 2
        assert "window_size" in result.output

    def test_fetch_rejects_missing_config_file(self, tmp_path):
        """A missing config file is reported before any transfer starts."""
        result = runner.invoke(
            cli.app,
            ["fetch", "https://example.org/a", "-c", str(tmp_path / "nope.yaml")],
        )

        assert result.exit_code == 2
        assert "Config file not found" in result.output


class TestShowConfigCommand:
    """Tests for 'show-config' command."""

    def test_show_config_raw_outputs_defaults(self):
        """--raw prints the effective options as JSON."""
        result = runner.invoke(cli.app, ["show-config", "--raw"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["user_agent"] == DEFAULT_USER_AGENT
        assert data["max_redirects"] == 5
        assert data["verify"] is False

    def test_show_config_reads_file_and_env(self, tmp_path, monkeypatch):
        """File values are overridden by ROLLINGFETCH_* variables."""
        config_path = tmp_path / "transport.yaml"
        config_path.write_text("timeout: 12\nuser_agent: from-file\n", encoding="utf-8")
        monkeypatch.setenv("ROLLINGFETCH_USER_AGENT", "from-env")

        result = runner.invoke(cli.app, ["show-config", "--raw", "-c", str(config_path)])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["timeout"] == 12.0
        assert data["user_agent"] == "from-env"

    def test_show_config_panel(self):
        """Without --raw the config is rendered in a panel."""
        result = runner.invoke(cli.app, ["show-config"])

        assert result.exit_code == 0
        assert "Transport Config" in result.output
