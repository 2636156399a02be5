"""Shared test fixtures."""

import os
from pathlib import Path

import pytest

# Keep test output quiet and independent from the caller's cluster settings
os.environ["TIERFLOW_LOG_LEVEL"] = "ERROR"
os.environ.pop("TIERFLOW_REGISTRY", None)

from tierflow import default_stack, load_stack  # noqa: E402
from tierflow.cli.scaffold import init_project  # noqa: E402


@pytest.fixture
def stack():
    """The built-in falcon / ariane / redis stack."""
    return default_stack()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A freshly scaffolded project directory."""
    return init_project("shop", tmp_path)


@pytest.fixture
def project_stack(project: Path):
    """The stack described by the scaffolded project's stack.toml."""
    return load_stack(project)


def set_frontend_container_port(project: Path, port: int):
    """Rewrite the scaffolded stack.toml so the frontend manifests route to `port`."""
    toml_path = project / "stack.toml"
    text = toml_path.read_text(encoding="utf-8")
    toml_path.write_text(text.replace("container_port = 80", f"container_port = {port}"), encoding="utf-8")
