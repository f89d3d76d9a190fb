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

"""Configuration classes, backend selection, and config display."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TypeVar

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from coffee_ops import console
from coffee_ops.constants import (
    DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_DB_HOST,
    DEFAULT_DB_NAME,
    DEFAULT_DB_PASSWORD,
    DEFAULT_DB_PORT,
    DEFAULT_DB_USER,
    DEFAULT_FORWARD_READY_TIMEOUT_SECONDS,
    DEFAULT_LOCAL_PORT,
    DEFAULT_NAMESPACE,
    DEFAULT_READINESS_ATTEMPTS,
    DEFAULT_READINESS_RETRY_WAIT_SECONDS,
    DEFAULT_READINESS_TIMEOUT_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DOCKER_DESKTOP_CONTEXT,
    KIND_CONTEXT_PREFIX,
)


# ============================================================================
# Backends
# ============================================================================

class Backend(str, Enum):
    """Local cluster backends the provisioner knows how to drive."""

    DOCKER_DESKTOP = "docker-desktop"
    MINIKUBE = "minikube"
    KIND = "kind"

    def context_name(self, cluster_name: str) -> str:
        """kubectl context name the backend registers for *cluster_name*."""
        if self is Backend.DOCKER_DESKTOP:
            return DOCKER_DESKTOP_CONTEXT
        if self is Backend.KIND:
            return f"{KIND_CONTEXT_PREFIX}{cluster_name}"
        return cluster_name

    @property
    def shares_host_images(self) -> bool:
        """Whether the cluster sees images built by the host docker daemon."""
        return self is Backend.DOCKER_DESKTOP

    @classmethod
    def from_context(cls, context: str) -> Backend | None:
        """Infer the backend from a kubectl context name, or None if unknown."""
        if context == DOCKER_DESKTOP_CONTEXT:
            return cls.DOCKER_DESKTOP
        if context.startswith(KIND_CONTEXT_PREFIX):
            return cls.KIND
        if "minikube" in context:
            return cls.MINIKUBE
        return None


def cluster_name_from_context(backend: Backend, context: str) -> str:
    """Reverse of :meth:`Backend.context_name` for kind and minikube contexts."""
    if backend is Backend.KIND and context.startswith(KIND_CONTEXT_PREFIX):
        return context[len(KIND_CONTEXT_PREFIX):]
    return context


SettingsT = TypeVar("SettingsT", bound=BaseSettings)


def with_overrides(cfg: SettingsT, **overrides) -> SettingsT:
    """Apply CLI overrides on top of env-loaded settings, skipping unset (None) values.

    Resolution priority: CLI arguments > COFFEE_* environment variables > defaults.
    Overrides go through the same field constraints as environment values.

    Raises:
        pydantic.ValidationError: If an override violates a field constraint.
    """
    update = {key: value for key, value in overrides.items() if value is not None}
    if not update:
        return cfg
    return type(cfg).model_validate({**cfg.model_dump(), **update})


class WaitMode(str, Enum):
    """Readiness condition used for each tier."""

    PODS = "pods"
    DEPLOYMENT = "deployment"


# ============================================================================
# Configuration classes
# ============================================================================

_BASE_CONFIG = SettingsConfigDict(
    env_prefix="COFFEE_",
    env_file=".env",
    extra="ignore",
    populate_by_name=True,
)


class ClusterConfig(BaseSettings):
    """Cluster backend configuration, auto-loaded from COFFEE_* env vars.

    Attributes:
        backend: Cluster backend, or None to detect it from the current context.
        cluster_name: Name of the kind cluster or minikube profile.
        create_retries: Maximum cluster creation attempts.
    """

    model_config = _BASE_CONFIG

    backend: Backend | None = None
    cluster_name: str = Field(
        default=DEFAULT_CLUSTER_NAME,
        validation_alias=AliasChoices("COFFEE_CLUSTER_NAME", "CLUSTER_NAME"),
        pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$",
    )
    create_retries: int = Field(default=DEFAULT_CLUSTER_CREATE_MAX_RETRIES, ge=1, le=10)


class DeployConfig(BaseSettings):
    """Manifest apply and readiness configuration.

    Attributes:
        namespace: Kubernetes namespace the application lives in.
        manifests_dir: Directory holding the postgres/ and app/ manifests.
        wait_mode: Readiness condition checked after each tier is applied.
        readiness_timeout: Seconds per readiness attempt.
        readiness_attempts: Number of readiness attempts before giving up.
        readiness_retry_wait: Seconds between readiness attempts.
        skip_build: Whether to skip building and loading images.
    """

    model_config = _BASE_CONFIG

    namespace: str = Field(
        default=DEFAULT_NAMESPACE,
        validation_alias=AliasChoices("COFFEE_NAMESPACE", "K8S_NAMESPACE"),
        pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$",
    )
    manifests_dir: Path = Path("k8s")
    wait_mode: WaitMode = WaitMode.PODS
    readiness_timeout: int = Field(default=DEFAULT_READINESS_TIMEOUT_SECONDS, ge=1, le=1800)
    readiness_attempts: int = Field(default=DEFAULT_READINESS_ATTEMPTS, ge=1, le=10)
    readiness_retry_wait: int = Field(default=DEFAULT_READINESS_RETRY_WAIT_SECONDS, ge=0)
    skip_build: bool = False


class DatabaseConfig(BaseSettings):
    """Database connection parameters handed to the cluster as a Secret."""

    model_config = SettingsConfigDict(env_prefix="COFFEE_DB_", env_file=".env", extra="ignore")

    host: str = DEFAULT_DB_HOST
    port: int = Field(default=DEFAULT_DB_PORT, ge=1, le=65535)
    name: str = DEFAULT_DB_NAME
    user: str = DEFAULT_DB_USER
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)


class SmokeConfig(BaseSettings):
    """Smoke test configuration.

    Attributes:
        base_url: Direct service URL; when unset a port-forward is used.
        customer_name: Customer name used for the test order.
        local_port: Local port the port-forward listens on.
        request_timeout: Per-request HTTP timeout in seconds.
        forward_ready_timeout: Seconds to wait for the port-forward to accept connections.
    """

    model_config = _BASE_CONFIG

    base_url: str | None = None
    customer_name: str = Field(default=DEFAULT_CUSTOMER_NAME, min_length=1)
    local_port: int = Field(default=DEFAULT_LOCAL_PORT, ge=1, le=65535)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)
    forward_ready_timeout: float = Field(default=DEFAULT_FORWARD_READY_TIMEOUT_SECONDS, gt=0)


class TeardownConfig(BaseSettings):
    """Teardown switches.

    Attributes:
        assume_yes: Skip interactive confirmation prompts.
        cleanup_cluster: Also delete the cluster without asking.
    """

    model_config = _BASE_CONFIG

    assume_yes: bool = False
    cleanup_cluster: bool = Field(
        default=False,
        validation_alias=AliasChoices("COFFEE_CLEANUP_CLUSTER", "CLEANUP_CLUSTER"),
    )


# ============================================================================
# Display
# ============================================================================

def display_config(
    cluster_cfg: ClusterConfig,
    deploy_cfg: DeployConfig,
    db_cfg: DatabaseConfig | None = None,
) -> None:
    """Print the resolved configuration for a deploy run.

    Args:
        cluster_cfg: Cluster backend configuration.
        deploy_cfg: Manifest apply and readiness configuration.
        db_cfg: Database parameters, or None to omit them.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  backend           : {cluster_cfg.backend.value if cluster_cfg.backend else '(auto from context)'}")
    console.print(f"  cluster_name      : {cluster_cfg.cluster_name}")
    console.print("[yellow]Deploy:[/yellow]")
    console.print(f"  namespace         : {deploy_cfg.namespace}")
    console.print(f"  manifests_dir     : {deploy_cfg.manifests_dir}")
    console.print(f"  wait_mode         : {deploy_cfg.wait_mode.value}")
    console.print(f"  readiness_timeout : {deploy_cfg.readiness_timeout}s x {deploy_cfg.readiness_attempts}")
    if db_cfg is not None:
        console.print("[yellow]Database:[/yellow]")
        console.print(f"  host              : {db_cfg.host}:{db_cfg.port}")
        console.print(f"  name              : {db_cfg.name}")
        console.print(f"  user              : {db_cfg.user}")
