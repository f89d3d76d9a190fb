# /*
# Copyright 2026 The Coffee Queue Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Resource names, defaults, and remediation hints."""

from __future__ import annotations

from pathlib import Path

# -- Resolved paths --
IMAGES_FILE = Path(__file__).resolve().parent / "images.yaml"

# -- Kubernetes resource names --
DEFAULT_NAMESPACE = "coffee-queue"
APP_DEPLOYMENT = "coffee-queue-app"
APP_LABEL = "app=coffee-queue-app"
DB_DEPLOYMENT = "postgres"
DB_LABEL = "app=postgres"
DB_SECRET = "coffee-queue-db"
SERVICE_NAME = "coffee-queue-service"
SERVICE_PORT = 8080

# -- Local docker (teardown) --
CONTAINER_NAME_FILTER = "coffee-queue"
COMPOSE_FILE = "docker-compose.yml"

# -- Manifest layout (relative to manifests_dir) --
REL_DB_MANIFESTS = "postgres"
REL_APP_MANIFESTS = "app"

# -- Cluster defaults --
DEFAULT_CLUSTER_NAME = "coffee-queue-cluster"
DEFAULT_CLUSTER_CREATE_MAX_RETRIES = 2
CLUSTER_CREATE_RETRY_WAIT_SECONDS = 10
DOCKER_DESKTOP_CONTEXT = "docker-desktop"
KIND_CONTEXT_PREFIX = "kind-"

# -- Readiness --
DEFAULT_READINESS_TIMEOUT_SECONDS = 120
DEFAULT_READINESS_ATTEMPTS = 3
DEFAULT_READINESS_RETRY_WAIT_SECONDS = 5
DIAGNOSTIC_LOG_TAIL = 50
RECENT_EVENTS_LIMIT = 10

# -- Smoke test --
DEFAULT_CUSTOMER_NAME = "K8sTest"
DEFAULT_LOCAL_PORT = 8080
DEFAULT_REQUEST_TIMEOUT_SECONDS = 5
DEFAULT_FORWARD_READY_TIMEOUT_SECONDS = 15
FORWARD_POLL_INTERVAL_SECONDS = 0.5
FORWARD_TERMINATE_GRACE_SECONDS = 5
HEALTH_PATH = "/health"
ORDER_PATH = "/order"
STATUS_PATH = "/status"
STATS_PATH = "/numberOfCoffees"

# -- Database defaults --
DEFAULT_DB_HOST = "postgres"
DEFAULT_DB_PORT = 5432
DEFAULT_DB_NAME = "coffeequeue"
DEFAULT_DB_USER = "coffee"
DEFAULT_DB_PASSWORD = "coffee"

# -- Observability --
DEFAULT_LOG_TAIL = 100
DEFAULT_MONITOR_INTERVAL_SECONDS = 2

# -- Load generator --
DEFAULT_LOAD_REQUESTS = 50
DEFAULT_LOAD_CONCURRENCY = 10

# -- Remediation hints --
HINT_DOCKER = "Start Docker Desktop (or the docker daemon) and retry"
HINT_KUBECTL = "Install kubectl: https://kubernetes.io/docs/tasks/tools/"
HINT_CLUSTER = (
    "Start a cluster first: enable Kubernetes in Docker Desktop, "
    "run 'minikube start', or run 'coffee-ops setup --backend kind'"
)
HINT_DOCKER_DESKTOP = (
    "Enable Kubernetes in Docker Desktop: Settings > Kubernetes > "
    "Enable Kubernetes > Apply & Restart"
)
HINT_KIND = "Install kind: https://kind.sigs.k8s.io/docs/user/quick-start/"
HINT_MINIKUBE = "Install minikube: https://minikube.sigs.k8s.io/docs/start/"
