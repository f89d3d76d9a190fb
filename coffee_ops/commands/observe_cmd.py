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

"""Read-mostly commands (status, hpa, logs, monitor, scale, port)."""

from __future__ import annotations

from enum import Enum

import typer

from coffee_ops.config import DeployConfig, SmokeConfig, with_overrides
from coffee_ops.constants import DEFAULT_LOG_TAIL, DEFAULT_MONITOR_INTERVAL_SECONDS
from coffee_ops.prober import probe_environment
from coffee_ops.status import (
    health_probe,
    monitor as monitor_resources,
    port_forward_foreground,
    report_hpa,
    report_status,
    scale as scale_deployment,
    stream_logs,
)


class LogTier(str, Enum):
    APP = "app"
    DATABASE = "database"
    ALL = "all"


def _namespace(namespace: str | None) -> str:
    probe_environment(need_docker=False)
    return with_overrides(DeployConfig(), namespace=namespace).namespace


def status(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    health: bool = typer.Option(False, "--health", help="Also probe /health through a port-forward"),
) -> None:
    """Show pods, services, deployments, HPA, resource usage and recent events."""
    ns = _namespace(namespace)
    report_status(ns)
    if health:
        health_probe(ns, SmokeConfig())


def hpa(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
) -> None:
    """Show Horizontal Pod Autoscaler state."""
    report_hpa(_namespace(namespace))


def logs(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    tier: LogTier = typer.Option(LogTier.APP, "--tier", case_sensitive=False, help="Which pods to show"),
    follow: bool = typer.Option(True, "--follow/--no-follow", help="Keep streaming new lines"),
    tail: int = typer.Option(DEFAULT_LOG_TAIL, "--tail", min=0, help="Recent lines to show first"),
) -> None:
    """View application (or database) logs."""
    stream_logs(_namespace(namespace), tier.value, follow=follow, tail=tail)


def monitor(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    interval: float = typer.Option(DEFAULT_MONITOR_INTERVAL_SECONDS, "--interval", min=0.5, help="Refresh seconds"),
) -> None:
    """Monitor pod resource usage and HPA (live updating)."""
    monitor_resources(_namespace(namespace), interval)


def scale(
    replicas: int = typer.Option(..., "--replicas", "-r", min=0, prompt="Enter number of replicas"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
) -> None:
    """Scale application replicas."""
    scale_deployment(_namespace(namespace), replicas)


def port(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    local_port: int | None = typer.Option(None, "--local-port", min=1, max=65535, help="Local port to listen on"),
) -> None:
    """Port-forward to the application service (Ctrl+C to stop)."""
    ns = _namespace(namespace)
    port_forward_foreground(ns, with_overrides(SmokeConfig(), local_port=local_port).local_port)
