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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

from rich.panel import Panel

from coffee_ops import console
from coffee_ops.cluster import (
    build_images,
    deployment_images,
    ensure_cluster,
    load_images,
    resolve_backend,
)
from coffee_ops.config import (
    Backend,
    ClusterConfig,
    DatabaseConfig,
    DeployConfig,
    SmokeConfig,
    display_config,
)
from coffee_ops.constants import APP_LABEL, SERVICE_NAME, SERVICE_PORT
from coffee_ops.errors import PrerequisiteError
from coffee_ops.manifests import Tier, deploy_tiers
from coffee_ops.prober import check_docker, probe_environment, verify_setup
from coffee_ops.smoke import SmokeStep, smoke_test
from coffee_ops.status import report_hpa, report_status

# ============================================================================
# Internal helpers
# ============================================================================


def _run_images(cluster_cfg: ClusterConfig) -> None:
    """Build images and load them into the cluster when it needs them."""
    backend, cluster_name = resolve_backend(cluster_cfg)
    images = deployment_images()
    build_images(images)
    if backend is None:
        console.print("[yellow]⚠️  Unknown cluster backend - skipping image load "
                      "(set COFFEE_BACKEND if the cluster cannot see host images)[/yellow]")
        return
    load_images(backend, cluster_name, images)


def _check_target_context(cluster_cfg: ClusterConfig, context: str | None) -> None:
    """An explicitly configured cluster must be the one kubectl points at.

    Raises:
        PrerequisiteError: If the active context belongs to another cluster.
    """
    backend = cluster_cfg.backend
    if backend is None:
        return
    expected = backend.context_name(cluster_cfg.cluster_name)
    if context != expected:
        raise PrerequisiteError(
            f"kubectl context is '{context}' but {backend.value} cluster "
            f"'{cluster_cfg.cluster_name}' was requested",
            hint=f"Run 'kubectl config use-context {expected}' or 'coffee-ops cluster create'",
        )


def _print_next_steps(namespace: str) -> None:
    console.print(Panel.fit("Next steps", style="bold blue"))
    console.print("To access the application:")
    console.print(f"  coffee-ops port   (kubectl port-forward service/{SERVICE_NAME} {SERVICE_PORT}:{SERVICE_PORT} -n {namespace})")
    console.print("To run the smoke test:")
    console.print("  coffee-ops test")
    console.print("To view logs:")
    console.print(f"  coffee-ops logs   (kubectl logs -f -l {APP_LABEL} -n {namespace})")
    console.print("To clean up:")
    console.print("  coffee-ops cleanup")


# ============================================================================
# Public API
# ============================================================================


def run_setup(backend: Backend, cluster_cfg: ClusterConfig) -> str:
    """Provision (or reuse) a local cluster and verify kubectl can reach it.

    Args:
        backend: Cluster backend to provision.
        cluster_cfg: Cluster name and retry settings.

    Returns:
        The active kubectl context.

    Raises:
        PrerequisiteError: If docker or the backend tool is unavailable.
        ProvisioningError: If the cluster cannot be created.
    """
    console.print(Panel.fit("Kubernetes setup for Coffee Queue", style="bold blue"))
    check_docker()
    context = ensure_cluster(backend, cluster_cfg)
    verify_setup()
    console.print("Run 'coffee-ops deploy' to deploy the application")
    return context


def run_deploy(
    cluster_cfg: ClusterConfig,
    deploy_cfg: DeployConfig,
    db_cfg: DatabaseConfig,
) -> list[Tier]:
    """Probe, build and load images, then apply database and application tiers.

    Args:
        cluster_cfg: Cluster backend configuration.
        deploy_cfg: Namespace, manifests and readiness settings.
        db_cfg: Database connection parameters.

    Returns:
        The deployed tiers.

    Raises:
        PrerequisiteError: If a prerequisite is missing (before anything is applied).
        ProvisioningError: If an image or manifest step fails.
        ReadinessTimeoutError: If a tier never becomes ready.
    """
    display_config(cluster_cfg, deploy_cfg, db_cfg)
    report = probe_environment(need_docker=not deploy_cfg.skip_build)
    _check_target_context(cluster_cfg, report.context)

    if deploy_cfg.skip_build:
        console.print("[yellow]   Skipping image build and load[/yellow]")
    else:
        _run_images(cluster_cfg)

    tiers = deploy_tiers(deploy_cfg, db_cfg)
    report_status(deploy_cfg.namespace)
    console.print("[green]✅ Deployment completed![/green]")
    return tiers


def run_test(deploy_cfg: DeployConfig, smoke_cfg: SmokeConfig) -> list[SmokeStep]:
    """Run the smoke test, probing kubectl and the cluster when a port-forward is needed."""
    if smoke_cfg.base_url is None:
        probe_environment(need_docker=False)
    return smoke_test(deploy_cfg.namespace, smoke_cfg)


def run_full(
    cluster_cfg: ClusterConfig,
    deploy_cfg: DeployConfig,
    db_cfg: DatabaseConfig,
    smoke_cfg: SmokeConfig,
) -> list[SmokeStep]:
    """Deploy, smoke test and report autoscaler state.

    Raises:
        CoffeeOpsError: From whichever phase fails first.
    """
    run_deploy(cluster_cfg, deploy_cfg, db_cfg)
    steps = smoke_test(deploy_cfg.namespace, smoke_cfg)
    report_hpa(deploy_cfg.namespace)
    console.print("[green]✅ Full deployment and testing complete![/green]")
    _print_next_steps(deploy_cfg.namespace)
    return steps
