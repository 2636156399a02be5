# tierflow/stack.py
"""
Stack description: the three tiers and how they are wired together.

- backend  (falcon): Go binary on 4000, reads REDIS_HOST / REDIS_PORT
- frontend (ariane): Express app, reads API_URL
- cache    (redis) : stock image on 6399 with a persistent volume
"""
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional

from . import constants as C
from .cli.toml_parser import parse_stack_toml, get_tier_config
from .errors import StackConfigError

logger = logging.getLogger("tierflow")

KINDS = ("backend", "frontend", "cache")
PORT_FIELDS = ("port", "container_port", "service_port", "target_port")
STR_FIELDS = ("name", "image", "path", "base", "storage", "storage_class", "mount_path", "access_mode")
ARGV_FIELDS = ("command", "start")   # rendered as exec-form lists


@dataclass
class Tier:
    kind: str
    name: str
    port: int                      # port the process binds
    image: str = ""                # stock image; empty means "build from path"
    path: str = ""                 # build context, relative to the project root
    base: str = ""                 # base image used by the rendered Dockerfile
    container_port: Optional[int] = None
    service_port: Optional[int] = None
    target_port: Optional[int] = None
    replicas: int = 1
    config: Dict[str, str] = field(default_factory=dict)
    command: List[str] = field(default_factory=list)
    start: List[str] = field(default_factory=list)
    # cache only
    storage: str = ""
    storage_class: str = ""
    mount_path: str = ""
    access_mode: str = C.CACHE_ACCESS_MODE

    def __post_init__(self):
        if self.container_port is None:
            self.container_port = self.port
        if self.service_port is None:
            self.service_port = self.container_port
        if self.target_port is None:
            self.target_port = self.container_port

    @property
    def labels(self) -> Dict[str, str]:
        return {"app": self.name}

    @property
    def config_name(self) -> Optional[str]:
        """ConfigMap name, or None when the tier takes no configuration"""
        return f"{self.name}-config" if self.config else None

    @property
    def claim_name(self) -> Optional[str]:
        return f"{self.name}-pvc" if self.storage else None

    @property
    def built(self) -> bool:
        """True if the image comes from a local build rather than a registry"""
        return not self.image

    def image_tag(self, registry: str = "") -> str:
        if self.image:
            return self.image
        tag = f"{self.name}:latest"
        return f"{registry.rstrip('/')}/{tag}" if registry else tag


@dataclass
class Stack:
    name: str
    backend: Tier
    frontend: Tier
    cache: Tier
    namespace: str = C.DEFAULT_NAMESPACE
    registry: str = ""

    @property
    def tiers(self) -> List[Tier]:
        return [self.backend, self.frontend, self.cache]

    def tier(self, key: str) -> Tier:
        """Look a tier up by kind ('backend') or name ('falcon')"""
        for t in self.tiers:
            if key in (t.kind, t.name):
                return t
        raise StackConfigError(f"Unknown tier '{key}' (expected one of {[t.name for t in self.tiers]})")

    def select(self, targets: Optional[List[str]] = None) -> List[Tier]:
        if not targets:
            return self.tiers
        return [self.tier(t) for t in targets]

    def validate(self):
        for t in self.tiers:
            for attr in PORT_FIELDS:
                value = getattr(t, attr)
                if not isinstance(value, int) or isinstance(value, bool) or not 0 < value < 65536:
                    raise StackConfigError(f"{t.name}.{attr} must be a port number, got {value!r}")
            for attr in STR_FIELDS:
                if not isinstance(getattr(t, attr), str):
                    raise StackConfigError(f"{t.name}.{attr} must be a string, got {getattr(t, attr)!r}")
            for attr in ARGV_FIELDS:
                value = getattr(t, attr)
                if not isinstance(value, list) or not all(isinstance(a, str) for a in value):
                    raise StackConfigError(f"{t.name}.{attr} must be a list of strings, got {value!r}")
            if not isinstance(t.replicas, int) or isinstance(t.replicas, bool) or t.replicas < 0:
                raise StackConfigError(f"{t.name}.replicas must be an integer >= 0, got {t.replicas!r}")
            if t.built and not t.path:
                raise StackConfigError(f"{t.name}: needs either 'image' or a build 'path'")
        names = [t.name for t in self.tiers]
        if len(set(names)) != len(names):
            raise StackConfigError(f"Tier names must be unique: {names}")
        # The volume is ReadWriteOnce: a second replica could never mount it
        if self.cache.replicas != 1:
            raise StackConfigError(f"{self.cache.name}.replicas must be 1, got {self.cache.replicas}")
        if not self.cache.storage:
            raise StackConfigError(f"{self.cache.name}: 'storage' is required")
        return self


def default_tiers() -> Dict[str, Tier]:
    return {
        "backend": Tier(
            kind="backend",
            name=C.BACKEND_NAME,
            port=C.BACKEND_PORT,
            path="backend",
            base=C.BACKEND_BASE_IMAGE,
            config={"REDIS_HOST": C.CACHE_NAME, "REDIS_PORT": str(C.CACHE_PORT)},
            start=[C.BACKEND_BINARY],
        ),
        "frontend": Tier(
            kind="frontend",
            name=C.FRONTEND_NAME,
            port=C.FRONTEND_PORT,
            path="frontend",
            base=C.FRONTEND_BASE_IMAGE,
            # Kept as documented: the manifests route to 80 while the app binds 3000
            container_port=C.FRONTEND_SERVICE_PORT,
            config={"API_URL": f"http://{C.BACKEND_NAME}:{C.BACKEND_PORT}"},
            start=["npm", "start"],
        ),
        "cache": Tier(
            kind="cache",
            name=C.CACHE_NAME,
            port=C.CACHE_PORT,
            image=C.CACHE_IMAGE,
            command=["redis-server", "--port", str(C.CACHE_PORT)],
            storage=C.CACHE_STORAGE,
            storage_class=C.CACHE_STORAGE_CLASS,
            mount_path=C.CACHE_MOUNT_PATH,
        ),
    }


def default_stack(name: str = "falcon-ariane") -> Stack:
    tiers = default_tiers()
    return Stack(name=name, **tiers)


def _apply_overrides(tier: Tier, overrides: Dict) -> Tier:
    allowed = {f.name for f in fields(Tier)} - {"kind"}
    unknown = set(overrides) - allowed
    if unknown:
        raise StackConfigError(f"[{tier.kind}] unknown key(s) {sorted(unknown)}")

    values = {f.name: getattr(tier, f.name) for f in fields(Tier)}
    # Derived ports follow 'port' unless they are set explicitly
    if "port" in overrides:
        for attr in ("container_port", "service_port", "target_port"):
            if attr not in overrides and values[attr] == tier.port:
                values[attr] = None
        if tier.kind == "cache" and "command" not in overrides and "--port" in tier.command:
            values["command"] = ["redis-server", "--port", str(overrides["port"])]
    if "container_port" in overrides:
        for attr in ("service_port", "target_port"):
            if attr not in overrides and values[attr] == tier.container_port:
                values[attr] = None
    values.update(overrides)
    try:
        return Tier(**values)
    except TypeError as e:
        raise StackConfigError(f"[{tier.kind}] {e}") from e


def load_stack(project_root: Path) -> Stack:
    """
    Load <project_root>/stack.toml on top of the built-in stack.
    A missing file yields the built-in stack unchanged.
    """
    toml_path = Path(project_root) / C.STACK_FILE
    raw = parse_stack_toml(toml_path)

    stack_section = raw.get("stack", {})
    unknown = set(stack_section) - {"name", "namespace", "registry"}
    if unknown:
        raise StackConfigError(f"[stack] unknown key(s) {sorted(unknown)}")
    for key, value in stack_section.items():
        if not isinstance(value, str):
            raise StackConfigError(f"[stack] {key} must be a string, got {value!r}")

    tiers = default_tiers()
    for kind in KINDS:
        overrides = get_tier_config(raw, kind)
        if overrides:
            tiers[kind] = _apply_overrides(tiers[kind], overrides)

    stack = Stack(
        name=stack_section.get("name", Path(project_root).resolve().name),
        namespace=stack_section.get("namespace", C.DEFAULT_NAMESPACE),
        registry=stack_section.get("registry", ""),
        **tiers,
    )
    logger.debug(f"Loaded stack '{stack.name}' from {toml_path}")
    return stack.validate()
