"""Tests for the CLI entry point."""

from unittest.mock import MagicMock, patch

import pytest

from devnode.__main__ import apply_overrides, build_parser, main
from devnode.config import Config, LaunchConfiguration
from devnode.exceptions import StartupTimeout


class TestApplyOverrides:
    """Tests for CLI overrides."""

    def test_no_flags_keeps_config(self):
        config = Config(launch=LaunchConfiguration(port=8545, args=("--a",)))
        args = build_parser().parse_args([])
        assert apply_overrides(config, args) == config

    def test_flags_override_file_values(self):
        config = Config(launch=LaunchConfiguration(port=8545, args=("--a",)))
        args = build_parser().parse_args(
            [
                "--executable", "/opt/anvil",
                "--port", "9000",
                "--block-time", "2",
                "--mnemonic", "one two",
                "--fork", "http://remote@5",
                "--timeout-ms", "100",
                "--", "--chain-id", "7",
            ]
        )

        result = apply_overrides(config, args)

        assert result.supervisor.executable == "/opt/anvil"
        assert result.supervisor.startup_timeout_ms == 100
        assert result.launch.port == 9000
        assert result.launch.block_time == 2
        assert result.launch.mnemonic == "one two"
        assert result.launch.fork == "http://remote@5"
        assert result.launch.args == ("--a", "--chain-id", "7")

    def test_extra_args_keep_inner_separator(self):
        """Test only the leading separator is dropped from extra args."""
        args = build_parser().parse_args(["--", "--foo", "--", "bar"])
        result = apply_overrides(Config(), args)
        assert result.launch.args == ("--foo", "--", "bar")

    def test_empty_executable_is_applied(self):
        args = build_parser().parse_args(["--executable", ""])
        assert apply_overrides(Config(), args).supervisor.executable == ""

    def test_original_config_untouched(self):
        config = Config()
        args = build_parser().parse_args(["--executable", "other", "--port", "1"])
        apply_overrides(config, args)
        assert config.supervisor.executable == "anvil"
        assert config.launch.port is None


class TestMain:
    """Tests for main."""

    def test_launch_error_exits_1(self):
        with patch("devnode.__main__.ProcessSupervisor") as mock_class:
            mock_class.return_value.spawn.side_effect = StartupTimeout(0.1)

            with pytest.raises(SystemExit) as exc_info:
                main(["--port", "8545"])

        assert exc_info.value.code == 1

    def test_missing_config_exits_1(self, temp_dir):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(temp_dir / "missing.toml")])
        assert exc_info.value.code == 1

    def test_runs_until_stopped(self, config_file, capsys):
        node = MagicMock()
        node.__enter__.return_value = node
        node.endpoint = "http://127.0.0.1:8555"
        node.ws_endpoint = "ws://127.0.0.1:8555"
        node.keys = ()

        with (
            patch("devnode.__main__.ProcessSupervisor") as mock_class,
            patch("devnode.__main__.setup_signal_handlers"),
            patch("devnode.__main__.threading.Event") as mock_event,
        ):
            mock_class.return_value.spawn.return_value = node

            main(["--config", str(config_file)])

        mock_event.return_value.wait.assert_called_once()
        node.__exit__.assert_called_once()
        launch = mock_class.return_value.spawn.call_args[0][0]
        assert launch.port == 8555
        assert "http://127.0.0.1:8555" in capsys.readouterr().out
