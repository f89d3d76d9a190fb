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

"""Read-only status reporting: pods, services, deployments, autoscalers, events."""

from __future__ import annotations

import time
from dataclasses import dataclass

import requests
import sh
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from coffee_ops import console
from coffee_ops.config import SmokeConfig
from coffee_ops.constants import (
    APP_DEPLOYMENT,
    APP_LABEL,
    DB_LABEL,
    DEFAULT_LOG_TAIL,
    HEALTH_PATH,
    RECENT_EVENTS_LIMIT,
    SERVICE_NAME,
    SERVICE_PORT,
)
from coffee_ops.smoke import PortForward
from coffee_ops.utils import kubectl_items, run_kubectl

LOG_SELECTORS = {
    "app": APP_LABEL,
    "database": DB_LABEL,
}


# ============================================================================
# Parsing
# ============================================================================

@dataclass(frozen=True)
class PodRow:
    name: str
    ready: str
    phase: str
    restarts: int
    node: str


@dataclass(frozen=True)
class EventRow:
    timestamp: str
    type: str
    reason: str
    obj: str
    message: str


def parse_pod(item: dict) -> PodRow:
    """Flatten a Pod JSON object into a table row."""
    statuses = item.get("status", {}).get("containerStatuses") or []
    ready = sum(1 for s in statuses if s.get("ready"))
    total = len(item.get("spec", {}).get("containers") or statuses)
    return PodRow(
        name=item["metadata"]["name"],
        ready=f"{ready}/{total}",
        phase=item.get("status", {}).get("phase", "Unknown"),
        restarts=sum(s.get("restartCount", 0) for s in statuses),
        node=item.get("spec", {}).get("nodeName", "<none>"),
    )


def _event_time(item: dict) -> str:
    return (
        item.get("lastTimestamp")
        or item.get("eventTime")
        or item.get("metadata", {}).get("creationTimestamp")
        or ""
    )


def recent_events(items: list[dict], limit: int = RECENT_EVENTS_LIMIT) -> list[EventRow]:
    """Sort events by timestamp and keep the newest *limit* entries, oldest first.

    RFC 3339 timestamps in UTC sort correctly as strings.
    """
    ordered = sorted(items, key=_event_time)[-limit:] if limit > 0 else []
    rows = []
    for item in ordered:
        involved = item.get("involvedObject", {})
        rows.append(EventRow(
            timestamp=_event_time(item),
            type=item.get("type", ""),
            reason=item.get("reason", ""),
            obj=f"{involved.get('kind', '').lower()}/{involved.get('name', '')}",
            message=(item.get("message") or "").strip(),
        ))
    return rows


def _service_ports(item: dict) -> str:
    ports = item.get("spec", {}).get("ports") or []
    return ",".join(
        f"{p.get('port')}" + (f":{p['nodePort']}" if p.get("nodePort") else "") + f"/{p.get('protocol', 'TCP')}"
        for p in ports
    )


def _hpa_targets(item: dict) -> str:
    targets = []
    for metric in item.get("status", {}).get("currentMetrics") or []:
        resource = metric.get("resource") or {}
        current = resource.get("current", {}).get("averageUtilization")
        if resource.get("name"):
            targets.append(f"{resource['name']}: {current if current is not None else '<unknown>'}%")
    return ", ".join(targets) or "<unknown>"


# ============================================================================
# Tables
# ============================================================================

def pods_table(items: list[dict]) -> Table:
    table = Table(title="Pods", title_justify="left")
    for col in ("NAME", "READY", "STATUS", "RESTARTS", "NODE"):
        table.add_column(col)
    for row in (parse_pod(i) for i in items):
        table.add_row(row.name, row.ready, row.phase, str(row.restarts), row.node)
    return table


def services_table(items: list[dict]) -> Table:
    table = Table(title="Services", title_justify="left")
    for col in ("NAME", "TYPE", "CLUSTER-IP", "PORTS"):
        table.add_column(col)
    for item in items:
        spec = item.get("spec", {})
        table.add_row(item["metadata"]["name"], spec.get("type", ""), spec.get("clusterIP", ""), _service_ports(item))
    return table


def deployments_table(items: list[dict]) -> Table:
    table = Table(title="Deployments", title_justify="left")
    for col in ("NAME", "READY", "UP-TO-DATE", "AVAILABLE"):
        table.add_column(col)
    for item in items:
        status = item.get("status", {})
        desired = item.get("spec", {}).get("replicas", 0)
        table.add_row(
            item["metadata"]["name"],
            f"{status.get('readyReplicas', 0)}/{desired}",
            str(status.get("updatedReplicas", 0)),
            str(status.get("availableReplicas", 0)),
        )
    return table


def hpa_table(items: list[dict]) -> Table:
    table = Table(title="Horizontal Pod Autoscalers", title_justify="left")
    for col in ("NAME", "REFERENCE", "TARGETS", "MIN", "MAX", "REPLICAS"):
        table.add_column(col)
    for item in items:
        spec = item.get("spec", {})
        ref = spec.get("scaleTargetRef", {})
        table.add_row(
            item["metadata"]["name"],
            f"{ref.get('kind', '')}/{ref.get('name', '')}",
            _hpa_targets(item),
            str(spec.get("minReplicas", 1)),
            str(spec.get("maxReplicas", "")),
            str(item.get("status", {}).get("currentReplicas", 0)),
        )
    return table


def events_table(rows: list[EventRow]) -> Table:
    table = Table(title="Recent Events", title_justify="left")
    for col in ("LAST SEEN", "TYPE", "REASON", "OBJECT", "MESSAGE"):
        table.add_column(col)
    for row in rows:
        table.add_row(row.timestamp, row.type, row.reason, row.obj, row.message)
    return table


def top_pods(namespace: str) -> str | None:
    """Resource consumption from the metrics server, or None if unavailable."""
    ok, stdout, _ = run_kubectl(["top", "pods", "-n", namespace])
    return stdout.rstrip() if ok else None


# ============================================================================
# Reports
# ============================================================================

def namespace_exists(namespace: str) -> bool:
    ok, _, _ = run_kubectl(["get", "namespace", namespace])
    return ok


def report_hpa(namespace: str) -> None:
    """Print autoscaler state, or a notice when none is configured."""
    items = kubectl_items("hpa", namespace)
    if items:
        console.print(hpa_table(items))
    else:
        console.print("[yellow]ℹ️  No HPA configured[/yellow]")


def report_status(namespace: str) -> None:
    """Print pods, services, deployments, autoscalers, usage and recent events.

    Args:
        namespace: Namespace to report on.
    """
    console.print(Panel.fit(f"Deployment status for namespace: {namespace}", style="bold blue"))
    if not namespace_exists(namespace):
        console.print(f"[red]✗ Namespace '{namespace}' not found[/red]")
        console.print("Run 'coffee-ops deploy' to deploy the application")
        return

    console.print(pods_table(kubectl_items("pods", namespace)))
    console.print(services_table(kubectl_items("services", namespace)))
    console.print(deployments_table(kubectl_items("deployments", namespace)))
    report_hpa(namespace)

    usage = top_pods(namespace)
    if usage is None:
        console.print("[yellow]ℹ️  Metrics server not available - cannot show resource usage[/yellow]")
    else:
        console.print(Panel(usage, title="Resource Usage", title_align="left"))

    console.print(events_table(recent_events(kubectl_items("events", namespace))))


def health_probe(namespace: str, smoke_cfg: SmokeConfig) -> bool:
    """Check ``/health`` through a port-forward and print PASS/FAIL.

    Returns:
        True if the endpoint answered with a success status.
    """
    if not run_kubectl(["get", "service", SERVICE_NAME, "-n", namespace])[0]:
        console.print("[red][FAIL] Application service not found[/red]")
        return False
    try:
        with PortForward(namespace, SERVICE_NAME, smoke_cfg.local_port, SERVICE_PORT,
                         ready_timeout=smoke_cfg.forward_ready_timeout) as forward:
            response = requests.get(f"{forward.base_url}{HEALTH_PATH}", timeout=smoke_cfg.request_timeout)
            healthy = response.ok
    except (requests.RequestException, RuntimeError) as e:
        console.print(f"[red][FAIL] Application health check failed: {e}[/red]")
        return False
    if healthy:
        console.print("[green][PASS] Application health check passed[/green]")
    else:
        console.print(f"[red][FAIL] Application health check failed (HTTP {response.status_code})[/red]")
    return healthy


# ============================================================================
# Interactive helpers
# ============================================================================

def stream_logs(namespace: str, tier: str = "app", follow: bool = True, tail: int = DEFAULT_LOG_TAIL) -> None:
    """Stream pod logs for a tier to the terminal.

    Args:
        namespace: Namespace of the pods.
        tier: ``app``, ``database`` or ``all``.
        follow: Keep streaming until interrupted.
        tail: Number of recent lines to show first.
    """
    selectors = list(LOG_SELECTORS.values()) if tier == "all" else [LOG_SELECTORS[tier]]
    for selector in selectors:
        console.print(Panel.fit(f"Logs for {selector}", style="bold blue"))
        args = ["logs", "-n", namespace, "-l", selector, f"--tail={tail}", "--prefix"]
        if follow and len(selectors) == 1:
            args.append("-f")
        try:
            sh.kubectl(*args, _fg=True)
        except KeyboardInterrupt:
            console.print("[yellow]Log streaming stopped[/yellow]")
            return


def _monitor_view(namespace: str) -> Group:
    usage = top_pods(namespace) or "Metrics server not available"
    return Group(
        Panel(Text(usage), title=f"Resource usage ({namespace})", title_align="left"),
        hpa_table(kubectl_items("hpa", namespace)),
    )


def monitor(namespace: str, interval: float = 2) -> None:
    """Live view of pod resource usage and autoscaler state until Ctrl+C."""
    console.print("[yellow]ℹ️  Monitoring (Ctrl+C to exit)...[/yellow]")
    try:
        with Live(_monitor_view(namespace), console=console, refresh_per_second=1) as live:
            while True:
                time.sleep(interval)
                live.update(_monitor_view(namespace))
    except KeyboardInterrupt:
        console.print("[yellow]Monitoring stopped[/yellow]")


def scale(namespace: str, replicas: int, deployment: str = APP_DEPLOYMENT) -> None:
    """Scale the application deployment.

    Raises:
        RuntimeError: If kubectl rejects the scale request.
    """
    console.print(f"[yellow]ℹ️  Scaling {deployment} to {replicas} replicas...[/yellow]")
    ok, _, stderr = run_kubectl(["scale", "deployment", deployment, "-n", namespace, f"--replicas={replicas}"])
    if not ok:
        raise RuntimeError(f"Failed to scale {deployment}: {stderr.strip()}")
    console.print("[green]✅ Scaling initiated! Run 'coffee-ops status' to check progress[/green]")


def port_forward_foreground(namespace: str, local_port: int) -> None:
    """Blocking port-forward for interactive use; Ctrl+C stops it."""
    console.print(f"[yellow]ℹ️  Application will be available at: http://localhost:{local_port}[/yellow]")
    console.print("Press Ctrl+C to stop")
    try:
        sh.kubectl("port-forward", "-n", namespace, f"svc/{SERVICE_NAME}", f"{local_port}:{SERVICE_PORT}", _fg=True)
    except KeyboardInterrupt:
        console.print("[yellow]Port forwarding stopped[/yellow]")
