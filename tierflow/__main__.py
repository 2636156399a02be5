# tierflow/__main__.py
import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import settings
from .errors import TierflowError, CommandError
from .stack import load_stack

logging.basicConfig(level=settings.LOG_LEVEL.upper(), format='[%(name)s] %(message)s')


def build_parser():
    parser = argparse.ArgumentParser(prog="tierflow", description=f"tierflow CLI v{__version__}")
    parser.add_argument("--project", "-C", default=".", help="Project directory (contains stack.toml)")
    subparsers = parser.add_subparsers(dest="command")

    # ==========================
    # 1. Project
    # ==========================
    init_cmd = subparsers.add_parser("init", help="Initialize a new project")
    init_cmd.add_argument("name", help="Project Name")

    fix = subparsers.add_parser("fix-build", help="Add a no-op build script to package.json")
    fix.add_argument("path", nargs="?", default=None, help="package.json or its folder (default: frontend tier)")

    render = subparsers.add_parser("render", help="Write Dockerfiles and manifests")
    render.add_argument("--out", default=None, help="Output directory (default: .build)")

    check = subparsers.add_parser("check", help="Check configuration consistency")
    check.add_argument("--manifests", default=None, help="Check these manifests instead of rendered ones")
    check.add_argument("--offline", action="store_true", help="Skip checks that need the cluster")

    # ==========================
    # 2. Images
    # ==========================
    build_cmd = subparsers.add_parser("build", help="Build tier images")
    build_cmd.add_argument("--registry", default=None, help="Docker Registry")
    build_cmd.add_argument("--target", "-t", action="append", dest="targets", help="Build specific tier only")
    build_cmd.add_argument("--push", action="store_true", help="Push after build")
    build_cmd.add_argument("--dry-run", action="store_true", help="Only write Dockerfiles")

    push_cmd = subparsers.add_parser("push", help="Build and push tier images")
    push_cmd.add_argument("--registry", default=None, help="Docker Registry")
    push_cmd.add_argument("--target", "-t", action="append", dest="targets", help="Push specific tier only")

    run_cmd = subparsers.add_parser("run", help="Run one tier locally with docker")
    run_cmd.add_argument("tier", help="Tier name or kind")

    # ==========================
    # 3. Cluster
    # ==========================
    deploy = subparsers.add_parser("deploy", help="Apply manifests to Kubernetes (No Build)")
    deploy.add_argument("--registry", default=None, help="Docker Registry")
    deploy.add_argument("--namespace", "-n", default=None, help="K8s Namespace")
    deploy.add_argument("--dry-run", action="store_true", help="Only generate manifests")
    deploy.add_argument("--target", "-t", action="append", dest="targets", help="Deploy specific tier only")

    up_cmd = subparsers.add_parser("up", help="Build, Push, and Deploy (All-in-one)")
    up_cmd.add_argument("--registry", default=None, help="Docker Registry")
    up_cmd.add_argument("--namespace", "-n", default=None, help="K8s Namespace")
    up_cmd.add_argument("--target", "-t", action="append", dest="targets", help="Target specific tier only")
    up_cmd.add_argument("--dry-run", action="store_true", help="Only generate Dockerfiles and manifests")

    clean = subparsers.add_parser("clean", help="Delete the stack's objects")
    clean.add_argument("--namespace", "-n", default=None, help="K8s Namespace")

    ls = subparsers.add_parser("ls", help="List the stack's services and pods")
    ls.add_argument("--namespace", "-n", default=None, help="K8s Namespace")

    logs = subparsers.add_parser("logs", help="View tier logs from K8s")
    logs.add_argument("tier", help="Tier name or kind")
    logs.add_argument("--namespace", "-n", default=None, help="K8s Namespace")

    subparsers.add_parser("doctor", help="Check environment health")

    probe = subparsers.add_parser("probe", help="PING the cache using REDIS_HOST/REDIS_PORT")
    probe.add_argument("--host", default=None, help="Override REDIS_HOST")
    probe.add_argument("--port", type=int, default=None, help="Override REDIS_PORT")
    probe.add_argument("--attempts", type=int, default=5, help="Connection attempts (at least 1)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args) or 0
    except TierflowError as e:
        print(f"❌ Error: {e}")
        return 1


def _load(args):
    stack = load_stack(Path(args.project))
    if getattr(args, "registry", None):
        stack.registry = args.registry
    elif not stack.registry:
        stack.registry = settings.REGISTRY
    if getattr(args, "namespace", None):
        stack.namespace = args.namespace
    return stack


def _handle_init(args):
    from .cli.scaffold import init_project
    init_project(args.name, Path(args.project))


def _handle_fix_build(args):
    from .cli.manager import fix_build_script
    if args.path:
        target = Path(args.path)
    else:
        stack = _load(args)
        target = Path(args.project) / stack.frontend.path
    fix_build_script(target)


def _handle_render(args):
    from .cli.deployer import write_artifacts
    stack = _load(args)
    out_dir = Path(args.out) if args.out else Path(args.project) / ".build"
    paths = write_artifacts(stack, out_dir)
    for path in paths:
        print(f"  📄 {path}")


def _handle_check(args):
    from .cli.checks import collect_stack, run_checks, has_errors, ERROR
    from .cli.cluster import list_storage_classes

    stack = _load(args)
    project_root = Path(args.project)
    manifest_dir = Path(args.manifests) if args.manifests else None
    manifests, builds = collect_stack(stack, project_root, manifest_dir)

    storage_classes = None
    if not args.offline:
        try:
            storage_classes = list_storage_classes()
        except CommandError as e:
            logging.getLogger("tierflow").warning(f"⚠️ Cluster not reachable: {e}")

    findings = run_checks(manifests, builds, storage_classes, check_storage=not args.offline)
    print(f"🔎 Checked {len(manifests)} manifests and {len(builds)} Dockerfile(s) of '{stack.name}'")
    for finding in findings:
        icon = "❌" if finding.severity == ERROR else "⚠️"
        print(f"  {icon} {finding}")

    if has_errors(findings):
        print(f"\n{sum(f.severity == ERROR for f in findings)} error(s) found.")
        return 1
    print("✨ No errors found.")
    return 0


def _handle_build(args):
    from .cli.builder import build_all_tiers
    stack = _load(args)
    print(f"🔨 Building Stack: {stack.name}")
    build_all_tiers(
        project_root=Path(args.project),
        stack=stack,
        push=getattr(args, "push", False),
        dry_run=getattr(args, "dry_run", False),
        targets=args.targets,
    )


def _handle_push(args):
    args.push = True
    return _handle_build(args)


def _handle_run(args):
    from .cli.manager import run_tier_local
    run_tier_local(_load(args), args.tier)


def _handle_deploy(args):
    from .cli.deployer import deploy_to_k8s
    stack = _load(args)
    print(f"🚀 Deploying Stack (Manifests only): {stack.name}")
    deploy_to_k8s(
        stack=stack,
        project_root=Path(args.project),
        dry_run=args.dry_run,
        targets=args.targets,
    )


def _handle_up(args):
    from .cli.builder import build_all_tiers
    from .cli.deployer import deploy_to_k8s
    stack = _load(args)
    project_root = Path(args.project)
    print(f"🚀 UP: Building, Pushing, and Deploying {stack.name}")

    # 1. Build & Push
    build_all_tiers(
        project_root=project_root,
        stack=stack,
        push=bool(stack.registry),  # local tags need no push
        dry_run=args.dry_run,
        targets=args.targets,
    )

    # 2. Deploy
    deploy_to_k8s(
        stack=stack,
        project_root=project_root,
        dry_run=args.dry_run,
        targets=args.targets,
    )


def _handle_clean(args):
    from .cli.deployer import cleanup_namespace
    cleanup_namespace(_load(args), Path(args.project))


def _handle_ls(args):
    from .cli.manager import list_stack
    list_stack(_load(args))


def _handle_logs(args):
    from .cli.manager import show_logs
    show_logs(_load(args), args.tier)


def _handle_doctor(args):
    from .cli.doctor import check_environment
    return 0 if check_environment(_load(args)) else 1


def _handle_probe(args):
    from .probe import probe_cache
    return 0 if probe_cache(args.host, args.port, attempts=args.attempts) else 1


HANDLERS = {
    "init": _handle_init,
    "fix-build": _handle_fix_build,
    "render": _handle_render,
    "check": _handle_check,
    "build": _handle_build,
    "push": _handle_push,
    "run": _handle_run,
    "deploy": _handle_deploy,
    "up": _handle_up,
    "clean": _handle_clean,
    "ls": _handle_ls,
    "logs": _handle_logs,
    "doctor": _handle_doctor,
    "probe": _handle_probe,
}


if __name__ == "__main__":
    sys.exit(main())
