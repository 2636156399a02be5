# tierflow/cli/builder.py
"""Per-tier container build system"""

import subprocess
import os
import tempfile
from pathlib import Path
from typing import List, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..constants import BACKEND_BINARY, BUILD_DIR
from ..errors import CommandError
from ..stack import Stack, Tier

TEMPLATE_DIR = Path(__file__).parent / "templates"


def template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        undefined=StrictUndefined,
    )


def generate_dockerfile(tier: Tier) -> str:
    """
    Generate the Dockerfile for a built tier.
    Backend: module download -> go build -> single binary as entrypoint.
    Frontend: npm install -> npm run build -> npm start.
    """
    if not tier.built:
        raise ValueError(f"{tier.name} uses the stock image '{tier.image}', nothing to build")

    template = template_env().get_template(f"Dockerfile.{tier.kind}.j2")
    binary = tier.start[0] if tier.kind == "backend" and tier.start else BACKEND_BINARY
    return template.render(
        base_image=tier.base,
        port=tier.port,
        binary=binary,
        start=tier.start or ["npm", "start"],
    ) + "\n"


def dockerfile_name(tier: Tier) -> str:
    return f"Dockerfile.{tier.name}"


def build_tier_image(
    project_root: Path,
    tier: Tier,
    registry: str = "",
    push: bool = False,
    dry_run: bool = False,
) -> str:
    """
    Build the Docker image for a single tier.

    Args:
        project_root: Root directory of the project
        tier: Tier to build (must not be a stock-image tier)
        registry: Registry prefix for the tag, empty for a local tag
        push: Whether to push to registry
        dry_run: If True, only save the Dockerfile to .build/

    Returns:
        Image tag (e.g., "localhost:5000/falcon:latest")
    """
    context_dir = project_root / tier.path
    if not context_dir.exists():
        raise FileNotFoundError(f"Build context not found: {context_dir}")

    dockerfile_content = generate_dockerfile(tier)
    image_tag = tier.image_tag(registry)

    if dry_run:
        # Save to .build/ for inspection
        build_dir = project_root / BUILD_DIR
        build_dir.mkdir(parents=True, exist_ok=True)
        dockerfile_path = build_dir / dockerfile_name(tier)
        dockerfile_path.write_text(dockerfile_content)
        print(f"  📄 [Dry-run] Saved: {dockerfile_path}")
        return image_tag

    with tempfile.NamedTemporaryFile(
        mode='w',
        delete=False,
        prefix=f'{dockerfile_name(tier)}.',
        dir=str(project_root)
    ) as f:
        f.write(dockerfile_content)
        temp_dockerfile = f.name

    try:
        build_cmd = ["docker", "build", "-f", temp_dockerfile, "-t", image_tag, str(context_dir)]
        print(f"  🔨 Building: {image_tag}")
        run_command(build_cmd, cwd=project_root)
        if push:
            print(f"  📤 Pushing: {image_tag}")
            run_command(["docker", "push", image_tag])
        print(f"  ✅ Built: {image_tag}")
    finally:
        if os.path.exists(temp_dockerfile):
            os.remove(temp_dockerfile)

    return image_tag


def build_all_tiers(
    project_root: Path,
    stack: Stack,
    push: bool = False,
    dry_run: bool = False,
    targets: List[str] = None,
) -> Dict[str, str]:
    """
    Build Docker images for every built tier (the cache uses a stock image).

    Returns:
        Dict mapping tier name to image tag
    """
    tiers = [t for t in stack.select(targets) if t.built]
    images = {}

    print(f"🚀 Building {len(tiers)} tier image(s)...")
    failed = []
    for tier in tiers:
        try:
            images[tier.name] = build_tier_image(
                project_root=project_root,
                tier=tier,
                registry=stack.registry,
                push=push,
                dry_run=dry_run,
            )
        except (CommandError, FileNotFoundError) as e:
            print(f"  ❌ Failed to build {tier.name}: {e}")
            failed.append(tier.name)

    print(f"✅ Built {len(images)}/{len(tiers)} images")
    if failed:
        raise CommandError(f"Build failed for: {', '.join(failed)}")
    return images


def run_command(cmd: List[str], cwd: Path = None, capture: bool = False) -> subprocess.CompletedProcess:
    """Run an external tool, turning failures into CommandError"""
    try:
        return subprocess.run(
            cmd,
            check=True,
            cwd=str(cwd) if cwd else None,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError as e:
        raise CommandError(f"'{cmd[0]}' not found. Is it installed and on PATH?") from e
    except subprocess.CalledProcessError as e:
        detail = f": {e.stderr.strip()}" if capture and e.stderr else ""
        raise CommandError(f"'{' '.join(cmd)}' exited with {e.returncode}{detail}", e.returncode) from e
