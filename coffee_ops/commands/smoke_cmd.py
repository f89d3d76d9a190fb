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

"""Smoke test and load generation commands (test, load)."""

from __future__ import annotations

import typer

from coffee_ops.config import DeployConfig, SmokeConfig, with_overrides
from coffee_ops.constants import DEFAULT_LOAD_CONCURRENCY, DEFAULT_LOAD_REQUESTS, SERVICE_NAME, SERVICE_PORT
from coffee_ops.loadtest import run_load
from coffee_ops.orchestrator import run_test
from coffee_ops.prober import probe_environment
from coffee_ops.smoke import PortForward


def smoke(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    customer: str | None = typer.Option(None, "--customer", help="Customer name for the test order"),
    base_url: str | None = typer.Option(None, "--base-url", help="Service URL (port-forward when omitted)"),
    local_port: int | None = typer.Option(None, "--local-port", min=1, max=65535, help="Local port for the port-forward"),
) -> None:
    """Smoke test the deployed application: health, order, status, statistics."""
    deploy_cfg = with_overrides(DeployConfig(), namespace=namespace)
    smoke_cfg = with_overrides(SmokeConfig(), customer_name=customer, base_url=base_url, local_port=local_port)
    run_test(deploy_cfg, smoke_cfg)


def load(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    requests_total: int = typer.Option(DEFAULT_LOAD_REQUESTS, "--requests", min=1, help="Number of orders to send"),
    concurrency: int = typer.Option(DEFAULT_LOAD_CONCURRENCY, "--concurrency", min=1, help="Concurrent requests"),
    base_url: str | None = typer.Option(None, "--base-url", help="Service URL (port-forward when omitted)"),
) -> None:
    """Send a burst of concurrent orders to exercise the autoscaler."""
    deploy_cfg = with_overrides(DeployConfig(), namespace=namespace)
    smoke_cfg = with_overrides(SmokeConfig(), base_url=base_url)
    if smoke_cfg.base_url:
        run_load(smoke_cfg.base_url, requests_total, concurrency, smoke_cfg.request_timeout)
        return
    probe_environment(need_docker=False)
    with PortForward(deploy_cfg.namespace, SERVICE_NAME, smoke_cfg.local_port, SERVICE_PORT,
                     ready_timeout=smoke_cfg.forward_ready_timeout) as forward:
        run_load(forward.base_url, requests_total, concurrency, smoke_cfg.request_timeout)
