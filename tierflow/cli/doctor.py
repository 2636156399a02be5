# tierflow/cli/doctor.py
import shutil
import subprocess

from .cluster import list_storage_classes
from ..errors import CommandError
from ..stack import Stack


def check_tool(name: str, install_hint: str) -> bool:
    """Check if a tool is installed and in PATH"""
    path = shutil.which(name)
    if path:
        print(f"✅ {name:<10}: Found ({path})")
        return True
    else:
        print(f"❌ {name:<10}: Not found. {install_hint}")
        return False


def check_k8s_connection() -> bool:
    """Check connection to Kubernetes cluster"""
    print(f"🔄 {'k8s':<10}: Checking connection...", end="\r")
    try:
        subprocess.run(
            ["kubectl", "get", "nodes"],
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL
        )
        print(f"✅ {'k8s':<10}: Connected")
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        print(f"❌ {'k8s':<10}: Connection failed. Check kubeconfig or cluster status.")
        return False


def check_storage_class(stack: Stack) -> bool:
    """The cache claim can only bind if its storage class exists"""
    wanted = stack.cache.storage_class
    try:
        available = list_storage_classes()
    except CommandError as e:
        print(f"❌ {'storage':<10}: {e}")
        return False
    if not wanted or wanted in available:
        print(f"✅ {'storage':<10}: Storage class '{wanted or '(cluster default)'}' available")
        return True
    print(f"❌ {'storage':<10}: Storage class '{wanted}' missing (have: {', '.join(available) or 'none'})")
    return False


def check_environment(stack: Stack) -> bool:
    """Run full environment check"""
    print("🏥 Running diagnostics for tierflow environment...\n")

    all_good = True

    # 1. Check Tools
    if not check_tool("docker", "Install Docker Desktop or Engine"): all_good = False
    if not check_tool("kubectl", "Install kubectl or enable Kubernetes in Docker Desktop"): all_good = False

    print("-" * 40)

    # 2. Check Connectivity
    if check_k8s_connection():
        if not check_storage_class(stack): all_good = False
    else:
        all_good = False

    print("\n" + ("=" * 40))
    if all_good:
        print("✨ Everything looks good! You are ready to deploy.")
    else:
        print("⚠️  Some issues detected. Please fix them before deploying.")
    return all_good
