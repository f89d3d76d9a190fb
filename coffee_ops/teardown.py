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

"""Teardown: namespace, local docker resources and, optionally, the cluster."""

from __future__ import annotations

from pathlib import Path

import docker
import sh
import typer
from rich.panel import Panel

from coffee_ops import console
from coffee_ops.cluster import ImageSpec, delete_cluster
from coffee_ops.config import Backend, TeardownConfig
from coffee_ops.constants import COMPOSE_FILE, CONTAINER_NAME_FILTER
from coffee_ops.utils import current_context, run_kubectl


def confirm(question: str, assume_yes: bool) -> bool:
    """Ask a y/N question unless confirmation has been pre-approved."""
    if assume_yes:
        return True
    return typer.confirm(question, default=False)


def delete_namespace(namespace: str, timeout: int = 300) -> None:
    """Delete the namespace and everything in it; an absent namespace is success.

    Raises:
        RuntimeError: If kubectl fails for any reason other than NotFound.
    """
    console.print(f"[yellow]ℹ️  Deleting namespace '{namespace}'...[/yellow]")
    ok, stdout, stderr = run_kubectl(
        ["delete", "namespace", namespace, "--ignore-not-found=true", f"--timeout={timeout}s"],
        timeout=timeout + 10,
    )
    if not ok:
        raise RuntimeError(f"Failed to delete namespace {namespace}: {stderr.strip()}")
    if stdout.strip():
        console.print(f"[green]✅ Namespace '{namespace}' deleted[/green]")
    else:
        console.print(f"[yellow]⚠️  Namespace '{namespace}' not found or already deleted[/yellow]")


def remove_containers(name_filter: str = CONTAINER_NAME_FILTER) -> None:
    """Stop and remove local containers whose name matches *name_filter*."""
    docker_client = docker.from_env()
    try:
        for container in docker_client.containers.list(all=True, filters={"name": name_filter}):
            try:
                if container.status == "running":
                    container.stop()
                container.remove()
                console.print(f"[green]✓ Removed container {container.name}[/green]")
            except docker.errors.NotFound:
                console.print(f"[yellow]   Container {container.name} already gone[/yellow]")
    finally:
        docker_client.close()


def remove_images(images: list[ImageSpec]) -> None:
    """Remove local docker images, skipping ones that are already gone."""
    console.print("[yellow]ℹ️  Removing local Docker images...[/yellow]")
    docker_client = docker.from_env()
    try:
        for image in images:
            try:
                docker_client.images.remove(image.ref, force=True)
                console.print(f"[green]✓ Removed {image.ref}[/green]")
            except docker.errors.ImageNotFound:
                console.print(f"[yellow]   {image.ref} not present[/yellow]")
    finally:
        docker_client.close()


def compose_down(compose_file: Path = Path(COMPOSE_FILE)) -> None:
    """Tear down a local docker compose stack and its volumes, if one is defined."""
    if not compose_file.is_file():
        return
    console.print("[yellow]ℹ️  Removing docker compose stack and volumes...[/yellow]")
    try:
        sh.docker("compose", "-f", str(compose_file), "down", "-v")
    except sh.ErrorReturnCode as e:
        console.print(f"[yellow]⚠️  docker compose down failed: "
                      f"{e.stderr.decode(errors='replace').strip()}[/yellow]")


def remove_docker_resources(images: list[ImageSpec]) -> None:
    """Remove coffee-queue containers, then *images*, then compose volumes."""
    remove_containers()
    remove_images(images)
    compose_down()


def teardown(
    namespace: str,
    teardown_cfg: TeardownConfig,
    *,
    backend: Backend | None,
    cluster_name: str,
    delete_cluster_requested: bool = False,
    images: list[ImageSpec] | None = None,
) -> None:
    """Remove the deployment, with confirmation gates for each destructive step.

    Args:
        namespace: Application namespace to delete.
        teardown_cfg: Confirmation and cluster-cleanup switches.
        backend: Cluster backend, or None if it could not be determined.
        cluster_name: kind cluster name or minikube profile.
        delete_cluster_requested: Whether the operator asked to delete the cluster.
        images: Local images to remove (along with coffee-queue containers and
            compose volumes), or None to keep them.
    """
    console.print(Panel.fit("Coffee Queue cleanup", style="bold blue"))
    console.print(f"Current cluster: {current_context() or '(none)'}")
    assume_yes = teardown_cfg.assume_yes

    if confirm(f"Delete all resources in namespace '{namespace}'?", assume_yes):
        delete_namespace(namespace)
    else:
        console.print("Namespace cleanup cancelled")

    if images and confirm("Remove local Docker images and containers?", assume_yes):
        remove_docker_resources(images)

    if delete_cluster_requested or teardown_cfg.cleanup_cluster:
        if backend is None:
            console.print("[yellow]⚠️  Cluster backend unknown - set COFFEE_BACKEND to delete the cluster[/yellow]")
        elif teardown_cfg.cleanup_cluster or confirm(f"Delete {backend.value} cluster '{cluster_name}'?", assume_yes):
            delete_cluster(backend, cluster_name)

    console.print("[green]✅ Cleanup completed![/green]")
