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

"""Tiered manifest apply with bounded readiness waits and timeout diagnostics."""

from __future__ import annotations

import base64
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml
from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_attempt, wait_fixed

from coffee_ops import console, logger
from coffee_ops.config import DatabaseConfig, DeployConfig, WaitMode
from coffee_ops.constants import (
    APP_DEPLOYMENT,
    APP_LABEL,
    DB_DEPLOYMENT,
    DB_LABEL,
    DB_SECRET,
    DIAGNOSTIC_LOG_TAIL,
    REL_APP_MANIFESTS,
    REL_DB_MANIFESTS,
)
from coffee_ops.errors import ProvisioningError, ReadinessTimeoutError
from coffee_ops.status import events_table, recent_events
from coffee_ops.utils import kubectl_items, run_kubectl, tail_lines


class TierState(str, Enum):
    """Lifecycle of a tier during one deploy run."""

    NOT_APPLIED = "NotApplied"
    APPLIED = "Applied"
    READY = "Ready"
    TIMED_OUT = "TimedOut"


@dataclass
class Tier:
    """A group of manifests applied and verified together.

    Attributes:
        name: Human-readable tier name.
        manifests: Directory (or file) passed to ``kubectl apply -f``.
        selector: Label selector matching the tier's pods.
        deployment: Deployment whose availability marks the tier ready.
        state: Current lifecycle state.
    """

    name: str
    manifests: Path
    selector: str
    deployment: str
    state: TierState = field(default=TierState.NOT_APPLIED)


def build_tiers(deploy_cfg: DeployConfig) -> list[Tier]:
    """Database tier first, application tier second."""
    return [
        Tier("PostgreSQL", deploy_cfg.manifests_dir / REL_DB_MANIFESTS, DB_LABEL, DB_DEPLOYMENT),
        Tier("Coffee Queue app", deploy_cfg.manifests_dir / REL_APP_MANIFESTS, APP_LABEL, APP_DEPLOYMENT),
    ]


# ============================================================================
# Namespace and secrets
# ============================================================================

def ensure_namespace(namespace: str) -> None:
    """Create the namespace unless it already exists.

    Raises:
        ProvisioningError: If creation fails for a reason other than AlreadyExists.
    """
    ok, _, _ = run_kubectl(["get", "namespace", namespace])
    if ok:
        console.print(f"[yellow]   Namespace '{namespace}' already exists[/yellow]")
        return
    ok, _, stderr = run_kubectl(["create", "namespace", namespace])
    if not ok and "AlreadyExists" not in stderr:
        raise ProvisioningError(f"Failed to create namespace {namespace}: {stderr.strip()}")
    console.print(f"[green]✓ Namespace '{namespace}' created[/green]")


def database_secret_manifest(namespace: str, db_cfg: DatabaseConfig) -> dict:
    """Build the Secret holding the database connection parameters.

    Args:
        namespace: Namespace the Secret is created in.
        db_cfg: Database connection parameters.

    Returns:
        Kubernetes Secret resource as a dictionary ready for YAML serialization.
    """
    values = {
        "DB_HOST": db_cfg.host,
        "DB_PORT": str(db_cfg.port),
        "POSTGRES_DB": db_cfg.name,
        "POSTGRES_USER": db_cfg.user,
        "POSTGRES_PASSWORD": db_cfg.password.get_secret_value(),
    }
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": DB_SECRET, "namespace": namespace},
        "type": "Opaque",
        "data": {k: base64.b64encode(v.encode()).decode() for k, v in values.items()},
    }


def apply_manifest(manifest: dict, namespace: str) -> None:
    """Apply an in-memory manifest through a temporary YAML file.

    Raises:
        ProvisioningError: If kubectl apply fails.
    """
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".yaml")
    try:
        tmp.write(yaml.safe_dump(manifest, default_flow_style=False).encode())
        tmp.flush()
        tmp.close()
        ok, _, stderr = run_kubectl(["apply", "-f", tmp.name, "-n", namespace])
    finally:
        Path(tmp.name).unlink(missing_ok=True)
    if not ok:
        kind = manifest.get("kind", "resource")
        raise ProvisioningError(f"Failed to apply {kind} {manifest['metadata']['name']}: {stderr.strip()}")


def apply_database_secret(namespace: str, db_cfg: DatabaseConfig) -> None:
    """Create or update the database Secret before the database tier starts."""
    apply_manifest(database_secret_manifest(namespace, db_cfg), namespace)
    console.print(f"[green]✓ Secret '{DB_SECRET}' applied[/green]")


# ============================================================================
# Tiers
# ============================================================================

def apply_tier(tier: Tier, namespace: str) -> None:
    """Apply a tier's manifests.

    Raises:
        ProvisioningError: If the manifests are missing or kubectl apply fails.
    """
    if not tier.manifests.exists():
        raise ProvisioningError(f"Manifests for {tier.name} not found: {tier.manifests}")
    console.print(f"[yellow]ℹ️  Deploying {tier.name}...[/yellow]")
    ok, stdout, stderr = run_kubectl(["apply", "-f", str(tier.manifests), "-n", namespace], timeout=120)
    if not ok:
        raise ProvisioningError(f"Failed to apply {tier.name} manifests: {stderr.strip()}")
    for line in stdout.strip().splitlines():
        logger.info(line)
    tier.state = TierState.APPLIED


def _wait_args(tier: Tier, namespace: str, deploy_cfg: DeployConfig) -> list[str]:
    timeout = f"--timeout={deploy_cfg.readiness_timeout}s"
    if deploy_cfg.wait_mode is WaitMode.DEPLOYMENT:
        return ["wait", "--for=condition=available", f"deployment/{tier.deployment}", "-n", namespace, timeout]
    return ["wait", "--for=condition=ready", "pod", "-l", tier.selector, "-n", namespace, timeout]


def dump_diagnostics(tier: Tier, namespace: str) -> None:
    """Print pod descriptions, container logs and recent events for a tier."""
    console.print(Panel.fit(f"Diagnostics for {tier.name}", style="bold red"))
    ok, stdout, _ = run_kubectl(["describe", "pods", "-l", tier.selector, "-n", namespace])
    if ok and stdout.strip():
        console.print(stdout.rstrip(), markup=False, highlight=False)
    ok, stdout, stderr = run_kubectl(
        ["logs", "-l", tier.selector, "-n", namespace, f"--tail={DIAGNOSTIC_LOG_TAIL}", "--all-containers"])
    logs = stdout if ok else stderr
    if logs.strip():
        console.print(Panel(tail_lines(logs, DIAGNOSTIC_LOG_TAIL), title="Container logs", title_align="left"))
    console.print(events_table(recent_events(kubectl_items("events", namespace))))


def wait_tier_ready(tier: Tier, namespace: str, deploy_cfg: DeployConfig) -> None:
    """Block until the tier reports ready, retrying a bounded number of times.

    Args:
        tier: An applied tier.
        namespace: Namespace of the tier's resources.
        deploy_cfg: Wait mode, per-attempt timeout and attempt count.

    Raises:
        ReadinessTimeoutError: If the tier is not ready after all attempts.
    """
    args = _wait_args(tier, namespace, deploy_cfg)

    @retry(
        stop=stop_after_attempt(deploy_cfg.readiness_attempts),
        wait=wait_fixed(deploy_cfg.readiness_retry_wait),
        retry=retry_if_result(lambda ok: not ok),
    )
    def _attempt() -> bool:
        ok, _, stderr = run_kubectl(args, timeout=deploy_cfg.readiness_timeout + 10)
        if not ok:
            logger.warning("%s not ready yet: %s", tier.name, stderr.strip())
        return ok

    console.print(f"[yellow]ℹ️  Waiting for {tier.name} to be ready "
                  f"(up to {deploy_cfg.readiness_attempts} x {deploy_cfg.readiness_timeout}s)...[/yellow]")
    try:
        _attempt()
    except RetryError:
        tier.state = TierState.TIMED_OUT
        dump_diagnostics(tier, namespace)
        raise ReadinessTimeoutError(
            f"{tier.name} failed to become ready after {deploy_cfg.readiness_attempts} attempts",
            hint=f"Inspect with: kubectl get pods -l {tier.selector} -n {namespace}",
        )
    tier.state = TierState.READY
    console.print(f"[green]✅ {tier.name} is ready[/green]")


def deploy_tiers(
    deploy_cfg: DeployConfig,
    db_cfg: DatabaseConfig,
    tiers: list[Tier] | None = None,
) -> list[Tier]:
    """Apply every tier in order, gating each on the previous one being ready.

    Args:
        deploy_cfg: Namespace, manifest location and readiness settings.
        db_cfg: Database parameters rendered into a Secret first.
        tiers: Tiers to deploy, defaulting to :func:`build_tiers`.

    Returns:
        The tiers, all in the READY state.

    Raises:
        ProvisioningError: If an apply fails.
        ReadinessTimeoutError: If a tier never becomes ready.
    """
    if tiers is None:
        tiers = build_tiers(deploy_cfg)
    namespace = deploy_cfg.namespace

    console.print(Panel.fit(f"Applying manifests to namespace '{namespace}'", style="bold blue"))
    ensure_namespace(namespace)
    apply_database_secret(namespace, db_cfg)
    for tier in tiers:
        apply_tier(tier, namespace)
        wait_tier_ready(tier, namespace, deploy_cfg)
    return tiers
