"""Tests for the marathon-exporter CLI."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from marathon_exporter.cli import cli


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_serve():
    """Replace the serving coroutine so the CLI returns immediately."""
    with patch("marathon_exporter.cli.serve", new_callable=AsyncMock) as serve, patch(
        "marathon_exporter.cli.configure_logging"
    ):
        yield serve


# =============================================================================
# Option parsing
# =============================================================================


class TestCliOptions:
    """Tests for option handling."""

    def test_help(self, runner):
        """--help MUST list the web and marathon options."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "--web.listen-address" in result.output
        assert "--marathon.uri" in result.output
        assert "--app.labels" in result.output

    def test_version(self, runner):
        """--version MUST print the package version."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_defaults(self, runner, mock_serve):
        """Without options the documented defaults MUST be used."""
        result = runner.invoke(cli, [], env={"MARATHON_URI": None})

        assert result.exit_code == 0, result.output
        config, endpoint, labels = mock_serve.await_args[0]
        assert config.web.listen_address == ":9088"
        assert config.web.telemetry_path == "/metrics"
        assert endpoint.url == "http://marathon.mesos:8080"
        assert config.marathon.verify_tls is True
        assert labels.label_names == ()

    def test_options_are_applied(self, runner, mock_serve):
        """Options MUST flow into the config passed to serve()."""
        result = runner.invoke(
            cli,
            [
                "--web.listen-address", "127.0.0.1:9100",
                "--web.telemetry-path", "/prom",
                "--marathon.uri", "https://admin:pw@marathon.example.com:8443",
                "--marathon.timeout", "5",
                "--marathon.retry-interval", "2",
                "--marathon.insecure-skip-verify",
                "--marathon.no-embed-tasks",
                "--app.labels", "team,com.example.env",
                "--app.exclude-groups", "/system",
            ],
        )

        assert result.exit_code == 0, result.output
        config, endpoint, labels = mock_serve.await_args[0]
        assert config.web.listen_address == "127.0.0.1:9100"
        assert config.web.telemetry_path == "/prom"
        assert config.marathon.timeout == 5.0
        assert config.marathon.retry_interval == 2.0
        assert config.marathon.verify_tls is False
        assert config.marathon.embed_tasks is False
        assert config.exclude_groups == ("/system",)
        assert endpoint.url == "https://marathon.example.com:8443"
        assert endpoint.username == "admin"
        assert labels.label_names == ("team", "com_example_env")

    def test_environment_variables(self, runner, mock_serve):
        """Options MUST be readable from environment variables."""
        result = runner.invoke(
            cli,
            [],
            env={
                "MARATHON_URI": "http://10.0.0.5:8080",
                "MARATHON_EXPORTER_APP_LABELS": "team",
            },
        )

        assert result.exit_code == 0, result.output
        config, endpoint, labels = mock_serve.await_args[0]
        assert endpoint.url == "http://10.0.0.5:8080"
        assert labels.keys == ("team",)

    def test_insecure_tls_logs_warning(self, runner, mock_serve, caplog):
        """Disabling TLS verification MUST log a warning at startup."""
        result = runner.invoke(cli, ["--marathon.insecure-skip-verify"])

        assert result.exit_code == 0, result.output
        assert "TLS certificate verification for Marathon is disabled" in caplog.text

    def test_no_tls_warning_by_default(self, runner, mock_serve, caplog):
        """Without the opt-out flag no TLS warning SHOULD be logged."""
        result = runner.invoke(cli, [], env={"MARATHON_INSECURE_SKIP_VERIFY": None})

        assert result.exit_code == 0, result.output
        assert "TLS certificate verification" not in caplog.text


# =============================================================================
# Fatal configuration errors
# =============================================================================


class TestCliConfigErrors:
    """Tests for startup configuration failures."""

    def test_malformed_uri_is_fatal(self, runner, mock_serve):
        """A malformed Marathon URI MUST exit non-zero without connecting."""
        result = runner.invoke(cli, ["--marathon.uri", "not a uri"])

        assert result.exit_code != 0
        assert "Invalid Marathon URI" in result.output
        mock_serve.assert_not_awaited()

    def test_bad_listen_address_is_fatal(self, runner, mock_serve):
        """A listen address without a port MUST exit non-zero."""
        result = runner.invoke(cli, ["--web.listen-address", "localhost"])

        assert result.exit_code != 0
        mock_serve.assert_not_awaited()

    def test_label_collision_is_fatal(self, runner, mock_serve):
        """Colliding label keys MUST exit non-zero."""
        result = runner.invoke(cli, ["--app.labels", "cost-center,cost.center"])

        assert result.exit_code != 0
        assert "collides" in result.output
        mock_serve.assert_not_awaited()

    def test_reserved_label_is_fatal(self, runner, mock_serve):
        """A label key named 'app' MUST exit non-zero."""
        result = runner.invoke(cli, ["--app.labels", "app"])

        assert result.exit_code != 0
        mock_serve.assert_not_awaited()


# =============================================================================
# Wiring
# =============================================================================


class TestServe:
    """Tests for serve() startup wiring."""

    @pytest.mark.asyncio
    async def test_connects_before_serving(self):
        """serve() MUST finish the handshake before starting the server."""
        from marathon_exporter.cli import serve
        from marathon_exporter.config import ExporterConfig
        from marathon_exporter.marathon import MarathonEndpoint
        from marathon_exporter.metrics import LabelExtractor

        order = []
        connector = MagicMock()
        connector.establish = AsyncMock(side_effect=lambda: order.append("connect"))
        run_server = AsyncMock(side_effect=lambda *a: order.append("serve"))

        with patch(
            "marathon_exporter.cli.MarathonConnector", return_value=connector
        ) as mock_connector_class, patch("marathon_exporter.cli.run_server", run_server):
            await serve(
                ExporterConfig(),
                MarathonEndpoint(url="http://marathon.mesos:8080"),
                LabelExtractor(["team"]),
            )

        assert order == ["connect", "serve"]
        assert mock_connector_class.call_args[1]["retry_interval"] == 10.0
        _, host, port = run_server.await_args[0]
        assert host is None
        assert port == 9088

    @pytest.mark.asyncio
    async def test_exporter_is_registered(self):
        """serve() MUST hand the app a registry containing the exporter."""
        from marathon_exporter.cli import serve
        from marathon_exporter.config import ExporterConfig
        from marathon_exporter.marathon import MarathonEndpoint
        from marathon_exporter.metrics import LabelExtractor, MarathonExporter

        connector = MagicMock()
        connector.establish = AsyncMock()

        with patch("marathon_exporter.cli.MarathonConnector", return_value=connector), patch(
            "marathon_exporter.cli.run_server", AsyncMock()
        ), patch("marathon_exporter.cli.build_registry") as mock_build_registry:
            await serve(
                ExporterConfig(),
                MarathonEndpoint(url="http://marathon.mesos:8080"),
                LabelExtractor(),
            )

        exporter = mock_build_registry.call_args[0][0]
        assert isinstance(exporter, MarathonExporter)
        assert exporter.namespace == "marathon"


class TestConfigureLogging:
    """Tests for logging setup."""

    def test_verbose_enables_debug(self):
        """--verbose MUST configure DEBUG logging."""
        import logging

        from marathon_exporter.cli import configure_logging

        with patch("marathon_exporter.cli.logging.basicConfig") as mock_basic_config:
            configure_logging(verbose=True)

        assert mock_basic_config.call_args[1]["level"] == logging.DEBUG

    def test_default_is_info(self):
        """Without --verbose logging MUST be at INFO."""
        import logging

        from marathon_exporter.cli import configure_logging

        with patch("marathon_exporter.cli.logging.basicConfig") as mock_basic_config:
            configure_logging(verbose=False)

        assert mock_basic_config.call_args[1]["level"] == logging.INFO
