"""Tests for environment diagnostics."""

import subprocess
from unittest.mock import patch

from tierflow.cli import doctor
from tierflow.errors import CommandError


class TestDoctor:
    """tierflow doctor."""

    def test_all_good(self, stack, capsys):
        with patch.object(doctor.shutil, "which", return_value="/usr/bin/tool"), \
                patch.object(doctor.subprocess, "run"), \
                patch.object(doctor, "list_storage_classes", return_value=["standard"]):
            assert doctor.check_environment(stack) is True

        assert "Everything looks good" in capsys.readouterr().out

    def test_missing_storage_class(self, stack, capsys):
        with patch.object(doctor.shutil, "which", return_value="/usr/bin/tool"), \
                patch.object(doctor.subprocess, "run"), \
                patch.object(doctor, "list_storage_classes", return_value=["gp2"]):
            assert doctor.check_environment(stack) is False

        assert "Storage class 'standard' missing" in capsys.readouterr().out

    def test_cluster_down_skips_storage(self, stack):
        error = subprocess.CalledProcessError(1, ["kubectl", "get", "nodes"])
        with patch.object(doctor.shutil, "which", return_value=None), \
                patch.object(doctor.subprocess, "run", side_effect=error), \
                patch.object(doctor, "list_storage_classes") as mock_classes:
            assert doctor.check_environment(stack) is False

        mock_classes.assert_not_called()

    def test_storage_query_fails(self, stack):
        with patch.object(doctor, "list_storage_classes", side_effect=CommandError("forbidden")):
            assert doctor.check_storage_class(stack) is False
