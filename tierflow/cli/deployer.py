# tierflow/cli/deployer.py
"""
Manifest rendering and kubectl apply.

Objects are applied in dependency order so that a Deployment never starts
before the ConfigMap and claim it references exist:
PersistentVolumeClaim -> ConfigMap -> Service -> Deployment
"""

import logging
from pathlib import Path
from typing import List, Tuple, Optional

from .builder import template_env, generate_dockerfile, dockerfile_name, run_command
from ..constants import BUILD_DIR
from ..stack import Stack, Tier

logger = logging.getLogger("tierflow")

APPLY_ORDER = ("PersistentVolumeClaim", "ConfigMap", "Service", "Deployment")


def _render_tier(env, tier: Tier, registry: str) -> List[Tuple[str, str, str]]:
    docs = []
    if tier.claim_name:
        docs.append(("PersistentVolumeClaim", f"{tier.claim_name}.yaml", env.get_template("pvc.yaml.j2").render(
            name=tier.claim_name,
            app=tier.name,
            storage_class=tier.storage_class,
            access_mode=tier.access_mode,
            storage=tier.storage,
        )))
    if tier.config_name:
        docs.append(("ConfigMap", f"{tier.config_name}.yaml", env.get_template("configmap.yaml.j2").render(
            name=tier.config_name,
            app=tier.name,
            data=tier.config,
        )))
    docs.append(("Service", f"{tier.name}-service.yaml", env.get_template("service.yaml.j2").render(
        name=tier.name,
        port=tier.service_port,
        target_port=tier.target_port,
    )))
    docs.append(("Deployment", f"{tier.name}-deployment.yaml", env.get_template("deployment.yaml.j2").render(
        name=tier.name,
        replicas=tier.replicas,
        image=tier.image_tag(registry),
        built=tier.built,
        command=tier.command,
        container_port=tier.container_port,
        config_name=tier.config_name,
        env_keys=list(tier.config),
        claim_name=tier.claim_name,
        mount_path=tier.mount_path,
    )))
    return docs


def render_manifests(stack: Stack, targets: List[str] = None) -> List[Tuple[str, str]]:
    """
    Render every Kubernetes object of the stack.

    Returns:
        [(filename, yaml_text)] sorted in apply order
    """
    env = template_env()
    docs = []
    for tier in stack.select(targets):
        docs.extend(_render_tier(env, tier, stack.registry))

    docs.sort(key=lambda d: APPLY_ORDER.index(d[0]))
    return [(filename, text + "\n") for _, filename, text in docs]


def write_artifacts(stack: Stack, out_dir: Path, targets: List[str] = None) -> List[Path]:
    """
    Write manifests to <out_dir>/k8s and Dockerfiles to <out_dir>.

    Returns:
        Manifest paths in apply order
    """
    k8s_dir = out_dir / "k8s"
    k8s_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for filename, text in render_manifests(stack, targets):
        path = k8s_dir / filename
        path.write_text(text, encoding="utf-8")
        paths.append(path)

    for tier in stack.select(targets):
        if tier.built:
            (out_dir / dockerfile_name(tier)).write_text(generate_dockerfile(tier), encoding="utf-8")

    logger.info(f"📄 Rendered {len(paths)} manifests into {k8s_dir}")
    return paths


def deploy_to_k8s(
    stack: Stack,
    project_root: Path,
    namespace: Optional[str] = None,
    dry_run: bool = False,
    targets: List[str] = None,
) -> List[Path]:
    """Render manifests into .build/ and kubectl apply them in dependency order"""
    namespace = namespace or stack.namespace
    paths = write_artifacts(stack, project_root / BUILD_DIR, targets)

    if dry_run:
        print(f"  📄 [Dry-run] Manifests saved under {paths[0].parent}")
        return paths

    print(f"🚀 Applying {len(paths)} objects to namespace '{namespace}'...")
    for path in paths:
        run_command(["kubectl", "apply", "-n", namespace, "-f", str(path)])
        print(f"  ✅ {path.name}")
    return paths


def cleanup_namespace(stack: Stack, project_root: Path, namespace: Optional[str] = None) -> List[Path]:
    """Delete the stack's objects, consumers first"""
    namespace = namespace or stack.namespace
    paths = write_artifacts(stack, project_root / BUILD_DIR)

    print(f"🧹 Removing stack '{stack.name}' from namespace '{namespace}'...")
    for path in reversed(paths):
        run_command(["kubectl", "delete", "-n", namespace, "--ignore-not-found=true", "-f", str(path)])
        print(f"  🗑️  {path.name}")
    return paths
