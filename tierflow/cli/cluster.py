# tierflow/cli/cluster.py
"""Read-only queries against the Kubernetes API (pods, services, storage classes)"""

import os
import logging
from typing import List, Dict

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from ..errors import CommandError
from ..stack import Stack

logger = logging.getLogger("tierflow")

K3S_CONFIG = "/etc/rancher/k3s/k3s.yaml"


def load_cluster_config():
    """kubeconfig first, then K3s, then in-cluster service account"""
    try:
        config.load_kube_config()
        return
    except (ConfigException, FileNotFoundError):
        pass
    if os.path.exists(K3S_CONFIG):
        config.load_kube_config(config_file=K3S_CONFIG)
        return
    try:
        config.load_incluster_config()
    except ConfigException as e:
        raise CommandError(f"No Kubernetes configuration found: {e}") from e


def list_storage_classes() -> List[str]:
    load_cluster_config()
    try:
        classes = client.StorageV1Api().list_storage_class()
    except ApiException as e:
        raise CommandError(f"Listing storage classes failed: {e.reason}", e.status) from e
    return [sc.metadata.name for sc in classes.items]


def list_stack_pods(stack: Stack, namespace: str = None) -> List[Dict[str, str]]:
    """Pods of every tier, matched by the 'app' label the manifests put on them"""
    namespace = namespace or stack.namespace
    load_cluster_config()
    v1 = client.CoreV1Api()

    pods = []
    for tier in stack.tiers:
        try:
            result = v1.list_namespaced_pod(namespace=namespace, label_selector=f"app={tier.name}")
        except ApiException as e:
            raise CommandError(f"Listing pods for {tier.name} failed: {e.reason}", e.status) from e
        for p in result.items:
            pods.append({
                "tier": tier.name,
                "name": p.metadata.name,
                "phase": p.status.phase,
            })
    return pods


def list_stack_services(stack: Stack, namespace: str = None) -> List[Dict[str, str]]:
    namespace = namespace or stack.namespace
    load_cluster_config()
    v1 = client.CoreV1Api()

    services = []
    for tier in stack.tiers:
        try:
            svc = v1.read_namespaced_service(name=tier.name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"Service {tier.name} not found in {namespace}")
                continue
            raise CommandError(f"Reading service {tier.name} failed: {e.reason}", e.status) from e
        ports = ", ".join(f"{p.port}->{p.target_port}" for p in (svc.spec.ports or []))
        services.append({
            "tier": tier.name,
            "name": svc.metadata.name,
            "cluster_ip": svc.spec.cluster_ip,
            "ports": ports,
        })
    return services
