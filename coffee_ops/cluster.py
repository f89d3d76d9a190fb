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

"""Cluster lifecycle for kind, minikube and Docker Desktop, plus image build and load."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import docker
import sh
import yaml
from rich.panel import Panel
from tenacity import retry, stop_after_attempt, wait_fixed

from coffee_ops import console, logger
from coffee_ops.config import Backend, ClusterConfig, cluster_name_from_context
from coffee_ops.constants import (
    CLUSTER_CREATE_RETRY_WAIT_SECONDS,
    HINT_DOCKER,
    HINT_DOCKER_DESKTOP,
    IMAGES_FILE,
)
from coffee_ops.errors import PrerequisiteError, ProvisioningError
from coffee_ops.prober import require_backend_tool
from coffee_ops.utils import current_context, run_kubectl


# ============================================================================
# Images
# ============================================================================

@dataclass(frozen=True)
class ImageSpec:
    """A container image the deployment needs inside the cluster.

    Attributes:
        name: Repository name (e.g. ``coffee-queue``).
        tag: Image tag.
        context: Build context relative to the project root, or None to pull.
    """

    name: str
    tag: str
    context: str | None = None

    @property
    def ref(self) -> str:
        return f"{self.name}:{self.tag}"


def deployment_images(images_file: Path = IMAGES_FILE) -> list[ImageSpec]:
    """Images declared in images.yaml, in file order (application first).

    Each top-level entry needs a ``name``; ``tag`` defaults to ``latest`` and
    ``context`` marks an image built locally rather than pulled.

    Raises:
        ProvisioningError: If the file is malformed or an entry has no name.
    """
    with open(images_file) as f:
        doc = yaml.safe_load(f) or {}
    if not isinstance(doc, dict):
        raise ProvisioningError(f"{images_file} must map image keys to entries")
    specs = []
    for key, entry in doc.items():
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ProvisioningError(f"Image '{key}' in {images_file} has no name")
        specs.append(ImageSpec(
            name=entry["name"],
            tag=str(entry.get("tag", "latest")),
            context=entry.get("context"),
        ))
    return specs


def build_images(images: list[ImageSpec], project_dir: Path = Path(".")) -> None:
    """Build images that have a context and pull the rest if absent locally.

    Args:
        images: Images to make available in the host docker daemon.
        project_dir: Root that build contexts are resolved against (the working
            directory by default).

    Raises:
        PrerequisiteError: If docker cannot be reached.
        ProvisioningError: If a build or pull fails.
    """
    console.print(Panel.fit("Building Docker images", style="bold blue"))
    try:
        docker_client = docker.from_env()
    except docker.errors.DockerException as e:
        raise PrerequisiteError(f"Failed to connect to Docker: {e}", hint=HINT_DOCKER) from e

    try:
        for image in images:
            if image.context:
                context_dir = project_dir / image.context
                if not context_dir.is_dir():
                    raise ProvisioningError(f"Build context for {image.ref} not found: {context_dir}")
                console.print(f"[yellow]ℹ️  Building {image.ref} from {context_dir}...[/yellow]")
                try:
                    docker_client.images.build(path=str(context_dir), tag=image.ref, rm=True)
                except (docker.errors.BuildError, docker.errors.APIError) as e:
                    raise ProvisioningError(f"Failed to build {image.ref}: {e}") from e
                console.print(f"[green]✓ {image.ref}[/green]")
                continue
            try:
                docker_client.images.get(image.ref)
                console.print(f"[green]✓ {image.ref} (already present)[/green]")
            except docker.errors.ImageNotFound:
                console.print(f"[yellow]ℹ️  Pulling {image.ref}...[/yellow]")
                try:
                    docker_client.images.pull(image.name, tag=image.tag)
                except docker.errors.APIError as e:
                    raise ProvisioningError(f"Failed to pull {image.ref}: {e}") from e
                console.print(f"[green]✓ {image.ref}[/green]")
    finally:
        docker_client.close()
    console.print("[green]✅ Docker images ready[/green]")


def load_images(backend: Backend, cluster_name: str, images: list[ImageSpec]) -> None:
    """Push local images into the cluster's own image store.

    Does nothing for backends that share the host docker image store.

    Args:
        backend: Cluster backend.
        cluster_name: kind cluster name or minikube profile.
        images: Images to load.

    Raises:
        ProvisioningError: If the backend tool fails to load an image.
    """
    if backend.shares_host_images:
        console.print(f"[yellow]ℹ️  {backend.value} shares the host image store - skipping image load[/yellow]")
        return

    console.print(Panel.fit(f"Loading images into {backend.value} cluster '{cluster_name}'", style="bold blue"))
    require_backend_tool(backend)
    for image in images:
        try:
            if backend is Backend.KIND:
                sh.kind("load", "docker-image", image.ref, "--name", cluster_name)
            else:
                sh.minikube("image", "load", image.ref, "-p", cluster_name)
        except sh.ErrorReturnCode as e:
            raise ProvisioningError(
                f"Failed to load {image.ref} into {backend.value}: {e.stderr.decode(errors='replace').strip()}"
            ) from e
        console.print(f"[green]✓ {image.ref}[/green]")
    console.print("[green]✅ Images loaded into cluster[/green]")


# ============================================================================
# Cluster operations
# ============================================================================

def _kubectl_contexts() -> list[str]:
    ok, stdout, _ = run_kubectl(["config", "get-contexts", "-o", "name"])
    return stdout.split() if ok else []


def _minikube_profiles() -> list[str]:
    try:
        output = str(sh.minikube("profile", "list", "-o", "json"))
    except sh.ErrorReturnCode as e:
        # minikube exits non-zero when no profile exists yet but still prints JSON
        output = e.stdout.decode(errors="replace")
    try:
        doc = json.loads(output)
    except json.JSONDecodeError:
        return []
    return [profile.get("Name", "") for profile in doc.get("valid") or []]


def cluster_exists(backend: Backend, cluster_name: str) -> bool:
    """Check whether the named cluster already exists.

    Args:
        backend: Cluster backend.
        cluster_name: kind cluster name or minikube profile.

    Returns:
        True if the cluster (or, for Docker Desktop, its context) exists.
    """
    if backend is Backend.KIND:
        return cluster_name in str(sh.kind("get", "clusters")).split()
    if backend is Backend.MINIKUBE:
        return cluster_name in _minikube_profiles()
    return backend.context_name(cluster_name) in _kubectl_contexts()


def create_cluster(backend: Backend, cluster_cfg: ClusterConfig) -> None:
    """Create a kind cluster or minikube profile with retry logic.

    Args:
        backend: Cluster backend (kind or minikube).
        cluster_cfg: Cluster configuration including retry count.

    Raises:
        ProvisioningError: If the cluster cannot be created after all retries.
    """
    name = cluster_cfg.cluster_name

    @retry(
        stop=stop_after_attempt(cluster_cfg.create_retries),
        wait=wait_fixed(CLUSTER_CREATE_RETRY_WAIT_SECONDS),
        reraise=True,
    )
    def _attempt() -> None:
        if backend is Backend.KIND:
            sh.kind("create", "cluster", "--name", name)
        else:
            sh.minikube("start", "-p", name, "--driver=docker")

    console.print(f"[yellow]ℹ️  Creating {backend.value} cluster '{name}'...[/yellow]")
    try:
        _attempt()
    except sh.ErrorReturnCode as e:
        raise ProvisioningError(
            f"Failed to create {backend.value} cluster '{name}': {e.stderr.decode(errors='replace').strip()}"
        ) from e
    console.print(f"[green]✅ Cluster '{name}' created[/green]")


def use_context(backend: Backend, cluster_name: str) -> str:
    """Point kubectl at the cluster's context.

    Returns:
        The context name now active.

    Raises:
        ProvisioningError: If kubectl cannot switch to the context.
    """
    context = backend.context_name(cluster_name)
    ok, _, stderr = run_kubectl(["config", "use-context", context])
    if not ok:
        raise ProvisioningError(f"Failed to switch kubectl context to '{context}': {stderr.strip()}")
    console.print(f"[green]✓ kubectl context set to '{context}'[/green]")
    return context


def ensure_cluster(backend: Backend, cluster_cfg: ClusterConfig) -> str:
    """Create the cluster if it is missing and make it the active context.

    Idempotent: an existing cluster is reused as-is.

    Args:
        backend: Cluster backend.
        cluster_cfg: Cluster configuration.

    Returns:
        The active kubectl context name.

    Raises:
        PrerequisiteError: If the backend tool is missing or Docker Desktop
            Kubernetes is not enabled.
        ProvisioningError: If creation or the context switch fails.
    """
    console.print(Panel.fit(f"Provisioning {backend.value} cluster", style="bold blue"))
    require_backend_tool(backend)
    name = cluster_cfg.cluster_name

    if cluster_exists(backend, name):
        console.print(f"[yellow]   Using existing cluster '{name}'[/yellow]")
    elif backend is Backend.DOCKER_DESKTOP:
        raise PrerequisiteError("Docker Desktop Kubernetes context not found", hint=HINT_DOCKER_DESKTOP)
    else:
        create_cluster(backend, cluster_cfg)

    return use_context(backend, name)


def resolve_backend(cluster_cfg: ClusterConfig) -> tuple[Backend | None, str]:
    """Pick the backend and cluster name for an existing cluster.

    An explicitly configured backend wins; otherwise the backend and cluster
    name are inferred from the active kubectl context.

    Returns:
        Tuple of (backend or None if unknown, cluster name).
    """
    if cluster_cfg.backend is not None:
        return cluster_cfg.backend, cluster_cfg.cluster_name
    context = current_context()
    backend = Backend.from_context(context) if context else None
    if backend is None or backend is Backend.DOCKER_DESKTOP:
        return backend, cluster_cfg.cluster_name
    name = cluster_name_from_context(backend, context)
    logger.info("Detected %s cluster '%s' from context '%s'", backend.value, name, context)
    return backend, name


def delete_cluster(backend: Backend, cluster_name: str) -> None:
    """Delete the cluster, treating an absent cluster as success.

    Args:
        backend: Cluster backend.
        cluster_name: kind cluster name or minikube profile.
    """
    if backend is Backend.DOCKER_DESKTOP:
        console.print("[yellow]⚠️  Docker Desktop Kubernetes cannot be deleted from here; "
                      "disable it in Docker Desktop settings instead[/yellow]")
        return
    require_backend_tool(backend)
    if not cluster_exists(backend, cluster_name):
        console.print(f"[yellow]⚠️  Cluster '{cluster_name}' not found or already deleted[/yellow]")
        return
    console.print(f"[yellow]ℹ️  Deleting {backend.value} cluster '{cluster_name}'...[/yellow]")
    if backend is Backend.KIND:
        sh.kind("delete", "cluster", "--name", cluster_name)
    else:
        sh.minikube("delete", "-p", cluster_name)
    console.print(f"[green]✅ Cluster '{cluster_name}' deleted[/green]")
