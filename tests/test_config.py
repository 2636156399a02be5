"""Tests for environment-driven settings."""

import importlib
import os
from unittest.mock import patch

import tierflow.config


class TestConfig:
    """Config defaults and overrides."""

    def teardown_method(self):
        importlib.reload(tierflow.config)

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = importlib.reload(tierflow.config)
            settings = config.settings

        assert settings.NAMESPACE == "default"
        assert settings.REGISTRY == ""
        assert settings.REDIS_HOST == "localhost"
        assert settings.REDIS_PORT == "6399"
        assert settings.API_URL == "http://localhost:4000"

    def test_runtime_contract_from_env(self):
        env = {"REDIS_HOST": "redis", "REDIS_PORT": "6400", "API_URL": "http://falcon:4000"}
        with patch.dict(os.environ, env, clear=True):
            settings = importlib.reload(tierflow.config).settings

        assert settings.REDIS_HOST == "redis"
        assert settings.REDIS_PORT == "6400"
        assert settings.API_URL == "http://falcon:4000"

    def test_service_link_port_does_not_break_import(self):
        """Pods next to a Service named redis get REDIS_PORT=tcp://<ip>:<port>."""
        with patch.dict(os.environ, {"REDIS_PORT": "tcp://10.0.0.12:6399"}, clear=True):
            settings = importlib.reload(tierflow.config).settings

        assert settings.REDIS_PORT == "tcp://10.0.0.12:6399"
