# tierflow/config.py
import os
from dataclasses import dataclass

from tierflow.constants import CACHE_PORT, BACKEND_PORT, DEFAULT_NAMESPACE


@dataclass
class Config:
    # Operator side (where and how to deploy)
    NAMESPACE: str = os.getenv("TIERFLOW_NAMESPACE", DEFAULT_NAMESPACE)
    REGISTRY: str = os.getenv("TIERFLOW_REGISTRY", "")
    LOG_LEVEL: str = os.getenv("TIERFLOW_LOG_LEVEL", "INFO")

    # Runtime contract of the backend (falcon-config)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    # kept raw: a Service named redis puts REDIS_PORT=tcp://<ip>:<port> into every pod
    REDIS_PORT: str = os.getenv("REDIS_PORT", str(CACHE_PORT))

    # Runtime contract of the frontend (ariane-config)
    API_URL: str = os.getenv("API_URL", f"http://localhost:{BACKEND_PORT}")


# 전역 설정 객체
settings = Config()
