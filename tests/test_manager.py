"""Tests for package fixes, local runs, logs and listings."""

import json
from unittest.mock import patch

import pytest

from tierflow.cli.manager import fix_build_script, docker_run_command, show_logs, list_stack
from tierflow.errors import ManifestError, CommandError


class TestFixBuildScript:
    """The no-op build step that keeps 'npm run build' from failing."""

    def test_adds_missing_script(self, tmp_path):
        package_json = tmp_path / "package.json"
        package_json.write_text(json.dumps({"name": "ariane", "scripts": {"start": "node server.js"}}, indent=2))

        assert fix_build_script(tmp_path) is True

        scripts = json.loads(package_json.read_text())["scripts"]
        assert scripts == {"start": "node server.js", "build": 'echo "No build step"'}

    def test_creates_scripts_section(self, tmp_path):
        package_json = tmp_path / "package.json"
        package_json.write_text('{"name": "ariane"}')

        assert fix_build_script(package_json) is True
        assert "build" in json.loads(package_json.read_text())["scripts"]

    def test_existing_script_is_kept(self, project):
        package_json = project / "frontend" / "package.json"
        before = package_json.read_text()

        assert fix_build_script(project / "frontend") is False
        assert package_json.read_text() == before

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestError, match="Could not find package.json"):
            fix_build_script(tmp_path)

    def test_invalid_json(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json")
        with pytest.raises(ManifestError, match="not valid JSON"):
            fix_build_script(tmp_path)


class TestDockerRun:
    """docker run for a single tier."""

    def test_backend_gets_config_as_env(self, stack):
        cmd = docker_run_command(stack, "falcon")

        assert cmd[:3] == ["docker", "run", "--rm"]
        assert "4000:4000" in cmd
        assert "REDIS_HOST=redis" in cmd
        assert "REDIS_PORT=6399" in cmd
        assert cmd[-1] == "falcon:latest"

    def test_cache_keeps_port_flag(self, stack):
        cmd = docker_run_command(stack, "cache")

        assert "6399:6399" in cmd
        assert cmd[-4:] == ["redis:latest", "redis-server", "--port", "6399"]


class TestLogs:
    """kubectl logs wrapper."""

    def test_command(self, stack):
        with patch("tierflow.cli.manager.subprocess.run") as mock_run:
            show_logs(stack, "frontend", namespace="apps", follow=False)

        cmd = mock_run.call_args.args[0]
        assert cmd[:3] == ["kubectl", "logs", "-lapp=ariane"]
        assert cmd[cmd.index("-n") + 1] == "apps"
        assert "-f" not in cmd

    def test_kubectl_missing(self, stack):
        with patch("tierflow.cli.manager.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(CommandError, match="kubectl"):
                show_logs(stack, "falcon")


class TestListStack:
    """ls output."""

    def test_prints_services_and_pods(self, stack, capsys):
        services = [{"tier": "redis", "name": "redis", "cluster_ip": "10.0.0.7", "ports": "6399->6399"}]
        pods = [{"tier": "redis", "name": "redis-5d8f-abc", "phase": "Running"}]
        with patch("tierflow.cli.manager.list_stack_services", return_value=services), \
                patch("tierflow.cli.manager.list_stack_pods", return_value=pods):
            list_stack(stack, "apps")

        out = capsys.readouterr().out
        assert "namespace 'apps'" in out
        assert "6399->6399" in out
        assert "redis-5d8f-abc" in out
