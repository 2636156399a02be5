"""Tests for the stack model and stack.toml loading."""

import pytest

from tierflow.errors import StackConfigError
from tierflow.stack import Tier, load_stack, default_stack


class TestDefaultStack:
    """The built-in three-tier description."""

    def test_tiers_in_order(self, stack):
        assert [t.name for t in stack.tiers] == ["falcon", "ariane", "redis"]
        assert [t.kind for t in stack.tiers] == ["backend", "frontend", "cache"]

    def test_backend_contract(self, stack):
        backend = stack.backend
        assert backend.port == 4000
        assert backend.service_port == backend.target_port == backend.container_port == 4000
        assert backend.config == {"REDIS_HOST": "redis", "REDIS_PORT": "6399"}
        assert backend.config_name == "falcon-config"
        assert backend.built

    def test_frontend_keeps_documented_port_mismatch(self, stack):
        frontend = stack.frontend
        assert frontend.port == 3000
        assert frontend.container_port == 80
        assert frontend.service_port == 80
        assert frontend.target_port == 80
        assert frontend.config == {"API_URL": "http://falcon:4000"}

    def test_cache_contract(self, stack):
        cache = stack.cache
        assert cache.image == "redis:latest"
        assert not cache.built
        assert cache.command == ["redis-server", "--port", "6399"]
        assert cache.claim_name == "redis-pvc"
        assert cache.storage == "1Gi"
        assert cache.access_mode == "ReadWriteOnce"
        assert cache.replicas == 1
        assert cache.config_name is None

    def test_validate_passes(self, stack):
        assert stack.validate() is stack


class TestTier:
    """Tier helpers."""

    def test_derived_ports_follow_port(self):
        tier = Tier(kind="backend", name="api", port=8080, path="api")
        assert (tier.container_port, tier.service_port, tier.target_port) == (8080, 8080, 8080)

    def test_image_tag_with_registry(self, stack):
        assert stack.backend.image_tag() == "falcon:latest"
        assert stack.backend.image_tag("localhost:5000/") == "localhost:5000/falcon:latest"

    def test_stock_image_ignores_registry(self, stack):
        assert stack.cache.image_tag("localhost:5000") == "redis:latest"

    def test_lookup_by_name_or_kind(self, stack):
        assert stack.tier("falcon") is stack.backend
        assert stack.tier("cache") is stack.cache

    def test_lookup_unknown(self, stack):
        with pytest.raises(StackConfigError, match="Unknown tier 'db'"):
            stack.tier("db")

    def test_select_targets(self, stack):
        assert stack.select(None) == stack.tiers
        assert stack.select(["ariane"]) == [stack.frontend]


class TestValidation:
    """Impossible stacks are rejected."""

    def test_cache_must_have_one_replica(self, stack):
        stack.cache.replicas = 2
        with pytest.raises(StackConfigError, match="replicas must be 1"):
            stack.validate()

    def test_port_out_of_range(self, stack):
        stack.backend.port = 70000
        with pytest.raises(StackConfigError, match="falcon.port"):
            stack.validate()

    def test_duplicate_names(self, stack):
        stack.frontend.name = "falcon"
        with pytest.raises(StackConfigError, match="unique"):
            stack.validate()

    def test_built_tier_needs_path(self, stack):
        stack.backend.path = ""
        with pytest.raises(StackConfigError, match="build 'path'"):
            stack.validate()


class TestLoadStack:
    """stack.toml on top of the defaults."""

    def test_missing_file_gives_defaults(self, tmp_path):
        stack = load_stack(tmp_path)
        assert stack.name == tmp_path.resolve().name
        assert stack.backend == default_stack().backend

    def test_scaffolded_file_matches_defaults(self, project_stack, stack):
        assert project_stack.name == "shop"
        assert project_stack.backend == stack.backend
        assert project_stack.frontend == stack.frontend
        assert project_stack.cache == stack.cache

    def test_overrides(self, tmp_path):
        (tmp_path / "stack.toml").write_text(
            '[stack]\nname = "demo"\nnamespace = "apps"\nregistry = "reg:5000"\n'
            "[backend]\nport = 5000\n"
            "[backend.config]\nREDIS_HOST = \"cache\"\nREDIS_PORT = 6400\n"
            "[cache]\nport = 6400\n",
            encoding="utf-8",
        )
        stack = load_stack(tmp_path)

        assert (stack.name, stack.namespace, stack.registry) == ("demo", "apps", "reg:5000")
        assert stack.backend.port == stack.backend.target_port == 5000
        # ConfigMap data is string-only
        assert stack.backend.config == {"REDIS_HOST": "cache", "REDIS_PORT": "6400"}
        assert stack.cache.command == ["redis-server", "--port", "6400"]
        assert stack.cache.service_port == 6400

    def test_container_port_override_moves_service(self, tmp_path):
        (tmp_path / "stack.toml").write_text("[frontend]\ncontainer_port = 3000\n", encoding="utf-8")
        stack = load_stack(tmp_path)
        assert stack.frontend.service_port == stack.frontend.target_port == 3000

    def test_explicit_service_port_is_kept(self, tmp_path):
        (tmp_path / "stack.toml").write_text(
            "[frontend]\ncontainer_port = 3000\nservice_port = 80\n", encoding="utf-8"
        )
        stack = load_stack(tmp_path)
        assert stack.frontend.service_port == 80
        assert stack.frontend.target_port == 3000

    @pytest.mark.parametrize(
        "content, message",
        [
            ("[stack]\ncolour = 1\n", r"\[stack\] unknown key"),
            ("[backend]\nthreads = 4\n", r"\[backend\] unknown key"),
            ("[database]\nport = 1\n", "unknown section"),
            ('[backend]\nport = "http"\n', "must be a port number"),
            ("[backend.config]\nNESTED = { a = 1 }\n", "must be a scalar"),
            ("[cache]\nreplicas = 3\n", "replicas must be 1"),
            ('[backend]\nreplicas = "2"\n', "replicas must be an integer"),
            ("[frontend]\nreplicas = true\n", "replicas must be an integer"),
            ('[cache]\ncommand = "redis-server --port 6399"\n', "command must be a list of strings"),
            ('[backend]\nstart = ["/falcon", 1]\n', "start must be a list of strings"),
            ("[backend]\npath = 5\n", "path must be a string"),
            ("[stack]\nregistry = 5000\n", r"\[stack\] registry must be a string"),
            ("[backend\n", "stack.toml"),
        ],
    )
    def test_invalid_files(self, tmp_path, content, message):
        (tmp_path / "stack.toml").write_text(content, encoding="utf-8")
        with pytest.raises(StackConfigError, match=message):
            load_stack(tmp_path)
