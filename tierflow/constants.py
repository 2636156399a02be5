# tierflow/constants.py

# Tier names double as Service names, so they are the in-cluster DNS names too
BACKEND_NAME = "falcon"
FRONTEND_NAME = "ariane"
CACHE_NAME = "redis"

BACKEND_PORT = 4000
FRONTEND_PORT = 3000          # what the Express process binds (Dockerfile EXPOSE)
FRONTEND_SERVICE_PORT = 80    # what the Deployment/Service declare
CACHE_PORT = 6399             # redis-server --port override

BACKEND_BINARY = "/falcon"
BACKEND_BASE_IMAGE = "golang:1.21"
FRONTEND_BASE_IMAGE = "node:18"
CACHE_IMAGE = "redis:latest"

CACHE_MOUNT_PATH = "/data"
CACHE_STORAGE = "1Gi"
CACHE_STORAGE_CLASS = "standard"
CACHE_ACCESS_MODE = "ReadWriteOnce"

DEFAULT_NAMESPACE = "default"
BUILD_DIR = ".build"
STACK_FILE = "stack.toml"

NOOP_BUILD_SCRIPT = 'echo "No build step"'
