"""
Tests for the corralctl command line interface.
"""

import json
import os
import sys
from unittest.mock import patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeParser

from corral.apparmor import AppArmorProfileManager, ExternalToolError, HostCapabilities
from corral.cli.corralctl import (
    CorralCLI,
    create_parser,
    default_config_path,
    load_instance_file,
    main,
)
from corral.config import ConfigError


@pytest.fixture
def cli(settings, admin_host):
    manager = AppArmorProfileManager(settings, parser=FakeParser(settings))
    return CorralCLI(settings, host=admin_host, manager=manager)


@pytest.fixture
def instance_file(temp_dir):
    path = temp_dir / "c1.yaml"
    path.write_text(
        "project: web\n"
        "name: c1\n"
        "config:\n"
        "  security.nesting: \"true\"\n"
        "  raw.apparmor: |\n"
        "    /srv/** r,\n"
    )
    return path


def parse(*argv):
    return create_parser().parse_args(list(argv))


# ===========================================================================
# Instance Resolution Tests
# ===========================================================================

class TestInstanceResolution:
    """Tests for building an Instance from arguments."""

    def test_project_defaults(self, cli):
        instance = cli._instance(parse('names', '--name', 'c1'))
        assert instance.project == "default"
        assert instance.name == "c1"

    def test_from_file(self, cli, instance_file):
        instance = cli._instance(parse('render', '-f', str(instance_file)))
        assert instance.project == "web"
        assert instance.nesting is True
        assert instance.expanded_config["raw.apparmor"] == "/srv/** r,\n"

    def test_arguments_override_file(self, cli, instance_file):
        instance = cli._instance(parse('render', '-f', str(instance_file), '-p', 'ci', '-n', 'c2'))
        assert (instance.project, instance.name) == ("ci", "c2")

    def test_name_required(self, cli):
        with pytest.raises(ConfigError):
            cli._instance(parse('names'))

    def test_bad_instance_file(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text("config: [1, 2]\n")
        with pytest.raises(ConfigError):
            load_instance_file(str(path))


# ===========================================================================
# Command Tests
# ===========================================================================

class TestCommands:
    """Tests for the individual commands."""

    def test_names_json(self, cli, capsys, settings):
        assert cli.cmd_names(parse('names', '-p', 'web', '-n', 'c1', '--json')) == 0
        data = json.loads(capsys.readouterr().out)
        assert set(data) == {'short_name', 'full_name', 'namespace'}
        assert data['short_name'] == "corral-web_c1"
        assert data['full_name'] == f"corral-web_c1_<{settings.var_dir}>"
        assert data['namespace'].startswith("corral-web_c1_<")

    def test_render(self, cli, capsys, instance_file):
        assert cli.cmd_render(parse('render', '-f', str(instance_file))) == 0
        out = capsys.readouterr().out
        assert out.startswith("#include <tunables/global>")
        assert "  /srv/** r," in out

    def test_render_writes_nothing(self, cli, settings):
        cli.cmd_render(parse('render', '-n', 'c1'))
        assert not settings.profiles_dir.exists()

    def test_load_then_delete(self, cli, settings):
        assert cli.cmd_load(parse('load', '-n', 'c1')) == 0
        assert (settings.profiles_dir / "corral-c1").exists()
        assert cli.cmd_delete(parse('delete', '-n', 'c1')) == 0
        assert not (settings.profiles_dir / "corral-c1").exists()

    def test_unload_and_parse(self, cli):
        assert cli.cmd_unload(parse('unload', '-n', 'c1')) == 0
        assert cli.cmd_parse(parse('parse', '-n', 'c1')) == 0
        assert [c[0] for c in cli.manager.parser.profile_calls] == ['-RWL', '-QWL']

    def test_host_json(self, cli, capsys):
        assert cli.cmd_host(parse('host', '--json')) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['apparmor_admin'] is True
        assert data['apparmor_stacking'] is False

    def test_host_is_detected_lazily(self, settings):
        with patch('corral.cli.corralctl.detect_host_capabilities',
                   return_value=HostCapabilities()) as mock_detect:
            cli = CorralCLI(settings)
            mock_detect.assert_not_called()
            assert cli.host == HostCapabilities()
            assert cli.host == HostCapabilities()
        mock_detect.assert_called_once_with(settings)


# ===========================================================================
# Entry Point Tests
# ===========================================================================

@patch('corral.cli.corralctl.setup_logging')
class TestMain:
    """Tests for main()."""

    def test_no_command_prints_help(self, mock_setup, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_names_uses_environment_settings(self, mock_setup, monkeypatch, capsys):
        monkeypatch.setenv('CORRAL_VAR_DIR', "/srv/corral")
        monkeypatch.delenv('CORRAL_CONFIG', raising=False)

        assert main(['--no-color', 'names', '-n', 'c1', '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['full_name'] == "corral-c1_</srv/corral>"
        assert data['namespace'] == "corral-c1_<srv-corral>"

    def test_verbose_flag(self, mock_setup, monkeypatch):
        monkeypatch.setenv('CORRAL_VAR_DIR', "/srv/corral")
        monkeypatch.delenv('CORRAL_CONFIG', raising=False)
        main(['-v', '--json-logs', 'names', '-n', 'c1'])
        mock_setup.assert_called_once_with(verbose=True, json_format=True)

    def test_config_error_returns_one(self, mock_setup, temp_dir, capsys):
        assert main(['--config', str(temp_dir / "missing.yaml"), 'names', '-n', 'c1']) == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_missing_name_returns_one(self, mock_setup, monkeypatch, capsys):
        monkeypatch.delenv('CORRAL_CONFIG', raising=False)
        assert main(['names']) == 1
        assert "instance name is required" in capsys.readouterr().err

    def test_apparmor_error_returns_one(self, mock_setup, settings, monkeypatch, capsys):
        monkeypatch.setenv('CORRAL_VAR_DIR', settings.var_dir)
        monkeypatch.delenv('CORRAL_CONFIG', raising=False)

        with patch('corral.cli.corralctl.detect_host_capabilities',
                   return_value=HostCapabilities(apparmor_available=True, apparmor_admin=True)), \
                patch('corral.cli.corralctl.AppArmorProfileManager') as mock_manager:
            mock_manager.return_value.load.side_effect = ExternalToolError("Failed to run: apparmor_parser")
            assert main(['load', '-n', 'c1']) == 1

        assert "Failed to run" in capsys.readouterr().err


class TestDefaultConfigPath:

    def test_environment_wins(self, monkeypatch):
        monkeypatch.setenv('CORRAL_CONFIG', "/tmp/corral.yaml")
        assert default_config_path() == "/tmp/corral.yaml"

    def test_system_file_when_present(self, monkeypatch):
        monkeypatch.delenv('CORRAL_CONFIG', raising=False)
        with patch('corral.cli.corralctl.os.path.exists', return_value=True):
            assert default_config_path() == "/etc/corral/corral.yaml"

    def test_none_without_file(self, monkeypatch):
        monkeypatch.delenv('CORRAL_CONFIG', raising=False)
        with patch('corral.cli.corralctl.os.path.exists', return_value=False):
            assert default_config_path() is None
