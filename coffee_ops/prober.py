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

"""Environment prober: docker, kubectl, cluster reachability, backend tools."""

from __future__ import annotations

from dataclasses import dataclass

import docker
from rich.panel import Panel

from coffee_ops import console, logger
from coffee_ops.config import Backend
from coffee_ops.constants import (
    HINT_CLUSTER,
    HINT_DOCKER,
    HINT_KIND,
    HINT_KUBECTL,
    HINT_MINIKUBE,
)
from coffee_ops.errors import PrerequisiteError
from coffee_ops.utils import current_context, require_command, run_kubectl

_BACKEND_TOOLS = {
    Backend.KIND: ("kind", HINT_KIND),
    Backend.MINIKUBE: ("minikube", HINT_MINIKUBE),
}


@dataclass(frozen=True)
class EnvironmentReport:
    """Result of a successful probe.

    Attributes:
        context: Active kubectl context, or None when the cluster was not probed.
        backend: Backend inferred from the context, or None if unknown.
    """

    context: str | None
    backend: Backend | None


def check_docker() -> None:
    """Verify the docker daemon answers a ping.

    Raises:
        PrerequisiteError: If docker is not installed or not running.
    """
    try:
        client = docker.from_env()
    except docker.errors.DockerException as e:
        raise PrerequisiteError(f"Docker is not running: {e}", hint=HINT_DOCKER) from e
    try:
        client.ping()
    except docker.errors.DockerException as e:
        raise PrerequisiteError(f"Docker is not running: {e}", hint=HINT_DOCKER) from e
    finally:
        client.close()
    console.print("[green]✓ Docker is running[/green]")


def check_kubectl() -> None:
    """Verify kubectl is installed and its client works.

    Raises:
        PrerequisiteError: If kubectl is missing or broken.
    """
    require_command("kubectl", hint=HINT_KUBECTL)
    ok, _, stderr = run_kubectl(["version", "--client"])
    if not ok:
        raise PrerequisiteError(f"kubectl is not working properly: {stderr.strip()}", hint=HINT_KUBECTL)
    console.print("[green]✓ kubectl is installed[/green]")


def check_cluster() -> str:
    """Verify the active kubectl context points at a reachable cluster.

    Returns:
        The active context name.

    Raises:
        PrerequisiteError: If no context is set or the API server is unreachable.
    """
    ok, stdout, stderr = run_kubectl(["cluster-info"], timeout=20)
    if not ok:
        logger.debug("cluster-info failed: %s", stderr.strip())
        raise PrerequisiteError("Cannot connect to Kubernetes cluster", hint=HINT_CLUSTER)
    context = current_context() or "(unknown)"
    console.print(f"[green]✓ Connected to Kubernetes cluster[/green] (context: {context})")
    first_line = stdout.strip().splitlines()[0] if stdout.strip() else ""
    if first_line:
        logger.info(first_line)
    return context


def require_backend_tool(backend: Backend) -> None:
    """Check the CLI needed to manage *backend* is installed.

    Args:
        backend: Cluster backend about to be driven.

    Raises:
        PrerequisiteError: If kind or minikube is not on PATH.
    """
    tool = _BACKEND_TOOLS.get(backend)
    if tool is None:
        return
    cmd, hint = tool
    require_command(cmd, hint=hint)


def probe_environment(*, need_docker: bool = True, need_cluster: bool = True) -> EnvironmentReport:
    """Run the prerequisite checks in order, failing fast on the first miss.

    Args:
        need_docker: Whether the docker daemon is required.
        need_cluster: Whether a reachable cluster is required.

    Returns:
        An :class:`EnvironmentReport` describing the active context.

    Raises:
        PrerequisiteError: On the first failed check.
    """
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    if need_docker:
        check_docker()
    check_kubectl()
    context = check_cluster() if need_cluster else None
    backend = Backend.from_context(context) if context else None
    return EnvironmentReport(context=context, backend=backend)


def verify_setup() -> None:
    """Post-provisioning sanity check: client version and node listing.

    Raises:
        PrerequisiteError: If the cluster cannot be reached.
    """
    console.print(Panel.fit("Testing Kubernetes setup", style="bold blue"))
    check_kubectl()
    check_cluster()
    ok, stdout, _ = run_kubectl(["get", "nodes"])
    if ok:
        console.print(stdout.rstrip())
    console.print("[green]✅ Kubernetes is ready for deployment![/green]")
