# tierflow/cli/checks.py
"""
Configuration consistency checks.

Works on plain artifacts (parsed YAML documents, Dockerfiles and their build
contexts), so it can lint rendered output as well as hand-written manifests.

Checks:
- build-steps:       every RUN/COPY in a Dockerfile has what it needs in the context
- configmap-keys:    every configMapKeyRef / configMapRef resolves
- service-selectors: every Service selects at least one Deployment's pods
- port-agreement:    listening port, containerPort, targetPort and --port agree
- volume-claims:     every claimName exists, RWO claims are mounted by one replica
- storage-class:     every PVC's storage class exists in the cluster
"""

import json
import re
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Optional, Iterable

import yaml

from .builder import generate_dockerfile
from .deployer import render_manifests
from ..errors import ManifestError
from ..stack import Stack

logger = logging.getLogger("tierflow")

ERROR = "error"
WARNING = "warning"

GLOB_CHARS = set("*?[")
NPM_RUN = re.compile(r"\bnpm\s+run(?:-script)?\s+([\w:.-]+)")
NPM_START = re.compile(r"\bnpm\s+(?:run\s+)?start\b")
GO_MODULE = re.compile(r"\bgo\s+(?:mod\s+download|build)\b")


@dataclass
class Finding:
    check: str
    severity: str
    resource: str
    message: str

    def __str__(self):
        return f"[{self.check}] {self.resource}: {self.message}"


@dataclass
class Dockerfile:
    runs: List[str] = field(default_factory=list)
    copies: List[List[str]] = field(default_factory=list)   # sources of each non-stage COPY/ADD
    exposes: List[int] = field(default_factory=list)
    commands: List[str] = field(default_factory=list)       # CMD and ENTRYPOINT, shell-joined


@dataclass
class BuildContext:
    """A Dockerfile plus the directory it is built from, tied to a Deployment by name"""
    name: str
    dockerfile: Dockerfile
    context_dir: Path


# ==========================================
# 1. Loading
# ==========================================

def _logical_lines(text: str) -> Iterable[str]:
    buf = ""
    for raw in text.splitlines():
        line = raw.strip()
        if not buf and (not line or line.startswith("#")):
            continue
        if line.endswith("\\"):
            buf += line[:-1].rstrip() + " "
            continue
        yield (buf + line).strip()
        buf = ""
    if buf.strip():
        yield buf.strip()


def _exec_form(args: str) -> str:
    """CMD ["npm", "start"] -> 'npm start'; shell form is returned as is"""
    if args.startswith("["):
        try:
            return " ".join(str(a) for a in json.loads(args))
        except ValueError:
            pass
    return args


def parse_dockerfile(text: str) -> Dockerfile:
    df = Dockerfile()
    for line in _logical_lines(text):
        instruction, _, args = line.partition(" ")
        instruction = instruction.upper()
        args = args.strip()

        if instruction == "RUN":
            df.runs.append(_exec_form(args))
        elif instruction in ("COPY", "ADD"):
            parts = args.split()
            if any(p.startswith("--from") for p in parts):
                continue  # copies from another stage, not from the context
            parts = [p for p in parts if not p.startswith("--")]
            if args.startswith("["):
                try:
                    parts = json.loads(args)
                except ValueError:
                    pass
            if len(parts) >= 2:
                df.copies.append(parts[:-1])
        elif instruction == "EXPOSE":
            for token in args.split():
                port = token.split("/")[0]
                if port.isdigit():
                    df.exposes.append(int(port))
        elif instruction in ("CMD", "ENTRYPOINT"):
            df.commands.append(_exec_form(args))
    return df


def load_manifests(manifest_dir: Path) -> List[dict]:
    """Every YAML document under manifest_dir, 'List' objects flattened"""
    if not manifest_dir.is_dir():
        raise ManifestError(f"Manifest directory not found: {manifest_dir}")

    docs = []
    for path in sorted(list(manifest_dir.rglob("*.yaml")) + list(manifest_dir.rglob("*.yml"))):
        try:
            docs.extend(parse_manifests(path.read_text(encoding="utf-8")))
        except ManifestError as e:
            raise ManifestError(f"{path}: {e}") from e
    return docs


def parse_manifests(text: str) -> List[dict]:
    try:
        loaded = [d for d in yaml.safe_load_all(text) if d]
    except yaml.YAMLError as e:
        raise ManifestError(f"invalid YAML: {e}") from e

    docs = []
    for doc in loaded:
        if not isinstance(doc, dict):
            raise ManifestError(f"expected a mapping, got {type(doc).__name__}")
        if doc.get("kind") == "List":
            docs.extend(item for item in doc.get("items") or [] if item)
        else:
            docs.append(doc)
    return docs


def collect_stack(stack: Stack, project_root: Path, manifest_dir: Optional[Path] = None):
    """
    Gather what to check for a stack.

    Manifests come from manifest_dir when given, otherwise they are rendered.
    A tier's own <path>/Dockerfile wins over the rendered one.
    """
    if manifest_dir is not None:
        manifests = load_manifests(manifest_dir)
    else:
        manifests = []
        for _, text in render_manifests(stack):
            manifests.extend(parse_manifests(text))

    builds = []
    for tier in stack.tiers:
        if not tier.built:
            continue
        context_dir = project_root / tier.path
        own = context_dir / "Dockerfile"
        text = own.read_text(encoding="utf-8") if own.exists() else generate_dockerfile(tier)
        builds.append(BuildContext(tier.name, parse_dockerfile(text), context_dir))
    return manifests, builds


# ==========================================
# 2. Helpers over manifests
# ==========================================

def _name(doc: dict) -> str:
    return (doc.get("metadata") or {}).get("name", "<unnamed>")


def _of_kind(manifests: List[dict], kind: str) -> List[dict]:
    return [d for d in manifests if d.get("kind") == kind]


def _pod_spec(deployment: dict) -> dict:
    return ((deployment.get("spec") or {}).get("template") or {}).get("spec") or {}


def _pod_labels(deployment: dict) -> Dict[str, str]:
    template = (deployment.get("spec") or {}).get("template") or {}
    return (template.get("metadata") or {}).get("labels") or {}


def _containers(deployment: dict) -> List[dict]:
    spec = _pod_spec(deployment)
    return (spec.get("initContainers") or []) + (spec.get("containers") or [])


def _port_flag(container: dict) -> Optional[int]:
    argv = []
    for key in ("command", "args"):
        value = container.get(key) or []
        argv += [str(a) for a in value] if isinstance(value, list) else str(value).split()
    for i, arg in enumerate(argv):
        if arg == "--port" and i + 1 < len(argv) and argv[i + 1].isdigit():
            return int(argv[i + 1])
        if arg.startswith("--port="):
            value = arg.split("=", 1)[1]
            if value.isdigit():
                return int(value)
    return None


def _selects(service: dict, deployment: dict) -> bool:
    selector = (service.get("spec") or {}).get("selector") or {}
    labels = _pod_labels(deployment)
    return bool(selector) and all(labels.get(k) == v for k, v in selector.items())


# ==========================================
# 3. Checks
# ==========================================

def check_build_steps(builds: List[BuildContext]) -> List[Finding]:
    findings = []
    for build in builds:
        ctx = build.context_dir
        resource = f"Dockerfile/{build.name}"
        if not ctx.is_dir():
            findings.append(Finding("build-steps", ERROR, resource, f"build context {ctx} does not exist"))
            continue

        for sources in build.dockerfile.copies:
            for src in sources:
                if src in (".", "./"):
                    continue
                if GLOB_CHARS & set(src):
                    if not any(ctx.glob(src)):
                        findings.append(Finding("build-steps", ERROR, resource, f"COPY {src} matches nothing in {ctx}"))
                elif not (ctx / src).exists():
                    findings.append(Finding("build-steps", ERROR, resource, f"COPY source {src} not found in {ctx}"))

        scripts = None
        package_json = ctx / "package.json"
        if package_json.exists():
            try:
                scripts = json.loads(package_json.read_text(encoding="utf-8")).get("scripts") or {}
            except ValueError as e:
                findings.append(Finding("build-steps", ERROR, resource, f"package.json is not valid JSON: {e}"))
                continue

        for run in build.dockerfile.runs:
            for script in NPM_RUN.findall(run):
                if scripts is None:
                    findings.append(Finding("build-steps", ERROR, resource, f"'npm run {script}' but no package.json in {ctx}"))
                elif script not in scripts:
                    findings.append(Finding(
                        "build-steps", ERROR, resource,
                        f"'npm run {script}' but package.json has no '{script}' script (run 'tierflow fix-build')",
                    ))
            if GO_MODULE.search(run) and not (ctx / "go.mod").exists():
                findings.append(Finding("build-steps", ERROR, resource, f"'{run}' needs go.mod in {ctx}"))

        for cmd in build.dockerfile.commands:
            # npm falls back to 'node server.js' when there is no start script
            if NPM_START.search(cmd) and scripts is not None and "start" not in scripts \
                    and not (ctx / "server.js").exists():
                findings.append(Finding("build-steps", WARNING, resource, "'npm start' has neither a start script nor server.js"))
    return findings


def check_configmap_keys(manifests: List[dict]) -> List[Finding]:
    configmaps = {}
    for cm in _of_kind(manifests, "ConfigMap"):
        keys = set((cm.get("data") or {})) | set((cm.get("binaryData") or {}))
        configmaps[_name(cm)] = keys

    findings = []
    for dep in _of_kind(manifests, "Deployment"):
        resource = f"Deployment/{_name(dep)}"
        for container in _containers(dep):
            for env in container.get("env") or []:
                ref = (env.get("valueFrom") or {}).get("configMapKeyRef")
                if not ref or ref.get("optional"):
                    continue
                cm_name, key = ref.get("name"), ref.get("key")
                if cm_name not in configmaps:
                    findings.append(Finding("configmap-keys", ERROR, resource, f"env {env.get('name')} references missing ConfigMap '{cm_name}'"))
                elif key not in configmaps[cm_name]:
                    findings.append(Finding("configmap-keys", ERROR, resource, f"env {env.get('name')}: ConfigMap '{cm_name}' has no key '{key}'"))
            for source in container.get("envFrom") or []:
                ref = source.get("configMapRef")
                if ref and not ref.get("optional") and ref.get("name") not in configmaps:
                    findings.append(Finding("configmap-keys", ERROR, resource, f"envFrom references missing ConfigMap '{ref.get('name')}'"))
    return findings


def check_service_selectors(manifests: List[dict]) -> List[Finding]:
    deployments = _of_kind(manifests, "Deployment")
    findings = []
    for svc in _of_kind(manifests, "Service"):
        selector = (svc.get("spec") or {}).get("selector")
        if not selector:
            continue  # selector-less services are backed by manual Endpoints
        if not any(_selects(svc, dep) for dep in deployments):
            findings.append(Finding(
                "service-selectors", ERROR, f"Service/{_name(svc)}",
                f"selector {selector} matches no Deployment pod template",
            ))
    return findings


def check_port_agreement(manifests: List[dict], builds: List[BuildContext] = ()) -> List[Finding]:
    """
    For every Deployment container, the ports the process listens on
    (Dockerfile EXPOSE, or a --port flag) must equal its containerPorts,
    and every selecting Service must target one of them.
    """
    exposes = {b.name: b.dockerfile.exposes for b in builds}
    services = _of_kind(manifests, "Service")
    findings = []

    for dep in _of_kind(manifests, "Deployment"):
        dep_name = _name(dep)
        containers = _pod_spec(dep).get("containers") or []
        declared = set()
        named = {}
        listening = set()

        for container in containers:
            for p in container.get("ports") or []:
                if "containerPort" in p:
                    declared.add(p["containerPort"])
                    if p.get("name"):
                        named[p["name"]] = p["containerPort"]
            flag = _port_flag(container)
            if flag is not None:
                listening.add(flag)
                if flag not in declared:
                    findings.append(Finding(
                        "port-agreement", ERROR, f"Deployment/{dep_name}",
                        f"container {container.get('name')} runs with --port {flag} but declares containerPort(s) {sorted(declared)}",
                    ))
        listening.update(exposes.get(dep_name, []))
        if not listening:
            listening = set(declared)

        for port in sorted(declared - listening):
            findings.append(Finding(
                "port-agreement", ERROR, f"Deployment/{dep_name}",
                f"containerPort {port} but the process listens on {sorted(listening)}",
            ))

        for svc in services:
            if not _selects(svc, dep):
                continue
            for p in (svc.get("spec") or {}).get("ports") or []:
                target = p.get("targetPort", p.get("port"))
                if target is None or isinstance(target, bool) or not isinstance(target, (int, str)):
                    findings.append(Finding(
                        "port-agreement", ERROR, f"Service/{_name(svc)}",
                        f"port entry {p} has no usable port or targetPort",
                    ))
                    continue
                if isinstance(target, str) and not target.isdigit():
                    if target not in named:
                        findings.append(Finding(
                            "port-agreement", ERROR, f"Service/{_name(svc)}",
                            f"targetPort '{target}' is not a named port of Deployment/{dep_name}",
                        ))
                        continue
                    target = named[target]
                if int(target) not in listening:
                    findings.append(Finding(
                        "port-agreement", ERROR, f"Service/{_name(svc)}",
                        f"targetPort {target} but Deployment/{dep_name} listens on {sorted(listening)}",
                    ))
    return findings


def check_volume_claims(manifests: List[dict]) -> List[Finding]:
    claims = {_name(c): c for c in _of_kind(manifests, "PersistentVolumeClaim")}
    findings = []
    for dep in _of_kind(manifests, "Deployment"):
        replicas = (dep.get("spec") or {}).get("replicas")
        if replicas is None:
            replicas = 1  # the API server default
        elif not isinstance(replicas, int) or isinstance(replicas, bool):
            findings.append(Finding("volume-claims", ERROR, f"Deployment/{_name(dep)}", f"replicas must be an integer, got {replicas!r}"))
            continue
        for volume in _pod_spec(dep).get("volumes") or []:
            claim_name = (volume.get("persistentVolumeClaim") or {}).get("claimName")
            if not claim_name:
                continue
            claim = claims.get(claim_name)
            if claim is None:
                findings.append(Finding("volume-claims", ERROR, f"Deployment/{_name(dep)}", f"claim '{claim_name}' is not defined"))
                continue
            modes = (claim.get("spec") or {}).get("accessModes") or []
            if "ReadWriteOnce" in modes and replicas > 1:
                findings.append(Finding(
                    "volume-claims", ERROR, f"Deployment/{_name(dep)}",
                    f"{replicas} replicas share ReadWriteOnce claim '{claim_name}'",
                ))
    return findings


def check_storage_classes(manifests: List[dict], available: Optional[List[str]]) -> List[Finding]:
    """available=None means the cluster could not be asked"""
    claims = _of_kind(manifests, "PersistentVolumeClaim")
    if not claims:
        return []
    if available is None:
        return [Finding("storage-class", WARNING, "cluster", "skipped: cluster not reachable")]

    findings = []
    for claim in claims:
        spec = claim.get("spec") or {}
        if "storageClassName" not in spec:
            if not available:
                findings.append(Finding("storage-class", ERROR, f"PersistentVolumeClaim/{_name(claim)}", "no storage class set and the cluster has none"))
            continue
        wanted = spec["storageClassName"]
        if wanted == "":
            continue  # static binding, no class involved
        if wanted not in available:
            findings.append(Finding(
                "storage-class", ERROR, f"PersistentVolumeClaim/{_name(claim)}",
                f"storage class '{wanted}' not found in cluster (have: {', '.join(available) or 'none'})",
            ))
    return findings


def run_checks(
    manifests: List[dict],
    builds: List[BuildContext] = (),
    storage_classes: Optional[List[str]] = None,
    check_storage: bool = True,
) -> List[Finding]:
    findings = []
    findings += check_build_steps(list(builds))
    findings += check_configmap_keys(manifests)
    findings += check_service_selectors(manifests)
    findings += check_port_agreement(manifests, list(builds))
    findings += check_volume_claims(manifests)
    if check_storage:
        findings += check_storage_classes(manifests, storage_classes)
    logger.debug(f"{len(findings)} finding(s) over {len(manifests)} manifests, {len(builds)} Dockerfile(s)")
    return findings


def has_errors(findings: List[Finding]) -> bool:
    return any(f.severity == ERROR for f in findings)
