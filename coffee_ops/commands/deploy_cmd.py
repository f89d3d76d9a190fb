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

"""Deployment commands (setup, deploy, full)."""

from __future__ import annotations

import typer

from coffee_ops.config import (
    Backend,
    ClusterConfig,
    DatabaseConfig,
    DeployConfig,
    SmokeConfig,
    WaitMode,
    with_overrides,
)
from coffee_ops.orchestrator import run_deploy, run_full, run_setup


def _prompt_backend() -> Backend:
    choices = ", ".join(b.value for b in Backend)
    answer = typer.prompt(f"Choose your Kubernetes platform ({choices})", default=Backend.KIND.value)
    try:
        return Backend(answer.strip().lower())
    except ValueError as err:
        raise typer.BadParameter(f"invalid choice '{answer}' (expected one of: {choices})") from err


def setup(
    backend: Backend | None = typer.Option(
        None, "--backend", case_sensitive=False, help="Cluster backend (prompted when omitted)"),
    cluster_name: str | None = typer.Option(
        None, "--cluster-name", help="kind cluster name / minikube profile"),
) -> None:
    """Set up a local Kubernetes cluster (Docker Desktop, Minikube or Kind)."""
    cluster_cfg = with_overrides(ClusterConfig(), backend=backend, cluster_name=cluster_name)
    selected = cluster_cfg.backend or _prompt_backend()
    run_setup(selected, cluster_cfg)


def _deploy_configs(
    namespace: str | None,
    backend: Backend | None,
    cluster_name: str | None,
    wait_mode: WaitMode | None,
    timeout: int | None,
    attempts: int | None,
    skip_build: bool,
) -> tuple[ClusterConfig, DeployConfig, DatabaseConfig]:
    cluster_cfg = with_overrides(ClusterConfig(), backend=backend, cluster_name=cluster_name)
    deploy_cfg = with_overrides(
        DeployConfig(),
        namespace=namespace,
        wait_mode=wait_mode,
        readiness_timeout=timeout,
        readiness_attempts=attempts,
        skip_build=skip_build or None,
    )
    return cluster_cfg, deploy_cfg, DatabaseConfig()


def deploy(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    backend: Backend | None = typer.Option(
        None, "--backend", case_sensitive=False, help="Cluster backend (detected from context when omitted)"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster name / minikube profile"),
    wait_mode: WaitMode | None = typer.Option(
        None, "--wait-for", case_sensitive=False, help="Readiness condition: pods or deployment"),
    timeout: int | None = typer.Option(None, "--timeout", min=1, max=1800, help="Seconds per readiness attempt"),
    attempts: int | None = typer.Option(None, "--attempts", min=1, max=10, help="Readiness attempts per tier"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Skip building and loading images"),
) -> None:
    """Build images and deploy PostgreSQL, then the application."""
    run_deploy(*_deploy_configs(namespace, backend, cluster_name, wait_mode, timeout, attempts, skip_build))


def full(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    backend: Backend | None = typer.Option(
        None, "--backend", case_sensitive=False, help="Cluster backend (detected from context when omitted)"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster name / minikube profile"),
    wait_mode: WaitMode | None = typer.Option(
        None, "--wait-for", case_sensitive=False, help="Readiness condition: pods or deployment"),
    timeout: int | None = typer.Option(None, "--timeout", min=1, max=1800, help="Seconds per readiness attempt"),
    attempts: int | None = typer.Option(None, "--attempts", min=1, max=10, help="Readiness attempts per tier"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Skip building and loading images"),
    customer: str | None = typer.Option(None, "--customer", help="Customer name for the test order"),
    base_url: str | None = typer.Option(None, "--base-url", help="Service URL (port-forward when omitted)"),
) -> None:
    """Deploy, run the smoke test and check the autoscaler."""
    cluster_cfg, deploy_cfg, db_cfg = _deploy_configs(
        namespace, backend, cluster_name, wait_mode, timeout, attempts, skip_build)
    smoke_cfg = with_overrides(SmokeConfig(), customer_name=customer, base_url=base_url)
    run_full(cluster_cfg, deploy_cfg, db_cfg, smoke_cfg)
