"""
Tests for the dev-install command line (dev_installers/cli.py).
"""

import json
from unittest.mock import patch

import pytest

from dev_installers import __version__
from dev_installers.cli import EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK, EXIT_USAGE, build_parser, main
from dev_installers.errors import InstallError
from dev_installers.pipeline import InstallResult
from dev_installers.tools.node import NodeInstaller

from conftest import FakeFetcher, sha256_of


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """No project config file and no tool variables from the caller's shell."""
    monkeypatch.chdir(tmp_path)
    for var in ("PREFIX", "INSTALL_ROOT", "VERBOSE", "DRY_RUN", "CHECKSUM_POLICY", "LOG_FILE",
                "GO_VERSION", "NODE_VERSION", "NODE_MAJOR", "CHANNEL"):
        monkeypatch.delenv(var, raising=False)


class TestParser:
    """Tests for argument parsing."""

    def test_positional_version(self):
        args = build_parser().parse_args(["node", "20", "--dry-run"])
        assert args.tool == "node"
        assert args.version == "20"
        assert args.dry_run is True

    def test_version_info(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version-info"])
        assert __version__ in capsys.readouterr().out

    def test_invalid_checksum_policy(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["go", "--checksum-policy", "never"])


class TestMain:
    """Tests for main()."""

    def test_unknown_tool(self, capsys):
        assert main(["rust"]) == EXIT_USAGE
        err = capsys.readouterr().err
        assert "[ERROR] Unknown tool: rust" in err
        assert "Available tools: go, node, python, postgresql, docker, zsh" in err

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["go", "--config", str(tmp_path / "missing.yml")]) == EXIT_USAGE
        assert "Invalid configuration" in capsys.readouterr().err

    def test_relative_prefix_rejected(self):
        assert main(["go", "--prefix", "relative/dir"]) == EXIT_USAGE

    def test_install_error(self, capsys):
        with patch("dev_installers.cli.get_installer") as mock_get:
            mock_get.return_value.run.side_effect = InstallError("Unsupported architecture: mips", "Use x86_64")
            assert main(["go"]) == EXIT_FAILURE
        err = capsys.readouterr().err
        assert "[ERROR] Unsupported architecture: mips" in err
        assert "        Use x86_64" in err

    def test_interrupted(self):
        with patch("dev_installers.cli.get_installer") as mock_get:
            mock_get.return_value.run.side_effect = KeyboardInterrupt()
            assert main(["zsh"]) == EXIT_INTERRUPTED

    def test_alias_and_options_reach_config(self):
        result = InstallResult(tool_name="go", success=True, installed_version="1.22.5", dry_run=True)
        with patch("dev_installers.cli.get_installer") as mock_get:
            mock_get.return_value.run.return_value = result
            assert main(["golang", "1.22.5", "--dry-run", "--prefix", "/opt/tools"]) == EXIT_OK
        mock_get.assert_called_once_with("go")
        config = mock_get.return_value.run.call_args[0][0]
        assert config.tool == "go"
        assert config.version == "1.22.5"
        assert config.dry_run is True
        assert config.prefix == "/opt/tools"

    def test_json_output(self, capsys):
        result = InstallResult(tool_name="node", success=True, installed_version="22.12.0",
                               duration_seconds=1.5, checksum_verified=True)
        with patch("dev_installers.cli.get_installer") as mock_get:
            mock_get.return_value.run.return_value = result
            assert main(["node", "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["installed_version"] == "22.12.0"
        assert data["checksum_verified"] is True

    def test_unsuccessful_result(self):
        result = InstallResult(tool_name="docker", success=False, installed_version=None)
        with patch("dev_installers.cli.get_installer") as mock_get:
            mock_get.return_value.run.return_value = result
            assert main(["docker"]) == EXIT_FAILURE

    def test_invalid_tools_section(self, tmp_path, capsys):
        path = tmp_path / "config.yml"
        path.write_text("tools: go\n")
        assert main(["go", "--config", str(path)]) == EXIT_USAGE
        assert "Invalid configuration: 'tools' must be a mapping" in capsys.readouterr().err

    def test_unwritable_rc_file(self, tmp_path, monkeypatch, capsys, node_tarball):
        """A startup file that cannot be written ends in one tagged error line."""
        home = tmp_path / "home"
        (home / ".profile").mkdir(parents=True)
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.setenv("SHELL", "/bin/bash")
        monkeypatch.setattr("dev_installers.shellrc.shutil.which", lambda name: None)
        base = "https://nodejs.org/download/release/v22.12.0"
        filename = "node-v22.12.0-linux-x64.tar.xz"
        fetcher = FakeFetcher(
            texts={f"{base}/SHASUMS256.txt": f"{sha256_of(node_tarball)}  {filename}\n"},
            files={f"{base}/{filename}": node_tarball},
        )
        installer = NodeInstaller(fetcher=fetcher, kernel="Linux", machine="x86_64")

        with patch("dev_installers.cli.get_installer", return_value=installer):
            code = main(["node", "22.12.0", "--prefix", str(tmp_path / "prefix")])

        assert code == EXIT_FAILURE
        err = capsys.readouterr().err
        assert f"[ERROR] Cannot read {home / '.profile'}" in err
        assert "Traceback" not in err

    def test_unexpected_os_error(self, capsys):
        with patch("dev_installers.cli.get_installer") as mock_get:
            mock_get.return_value.run.side_effect = PermissionError(13, "Permission denied", "/usr/local/go")
            assert main(["go"]) == EXIT_FAILURE
        assert "[ERROR] Permission denied: /usr/local/go" in capsys.readouterr().err
