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

"""Smoke test against the deployed service, with a scoped port-forward."""

from __future__ import annotations

import socket
import subprocess
from dataclasses import dataclass

import requests
from rich.panel import Panel
from tenacity import retry, retry_if_exception_type, stop_after_delay, wait_fixed

from coffee_ops import console, logger
from coffee_ops.config import SmokeConfig
from coffee_ops.constants import (
    FORWARD_POLL_INTERVAL_SECONDS,
    FORWARD_TERMINATE_GRACE_SECONDS,
    HEALTH_PATH,
    ORDER_PATH,
    SERVICE_NAME,
    SERVICE_PORT,
    STATS_PATH,
    STATUS_PATH,
)
from coffee_ops.errors import SmokeTestError


# ============================================================================
# Port-forward
# ============================================================================

def port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """Whether another process is already listening on *host*:*port*."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return True
    return False


class PortForward:
    """``kubectl port-forward`` to a service, released on every exit path.

    Use as a context manager; the child process is terminated (then killed if
    it ignores SIGTERM) when the block exits, whether normally or by exception.
    """

    def __init__(
        self,
        namespace: str,
        service: str = SERVICE_NAME,
        local_port: int = SERVICE_PORT,
        remote_port: int = SERVICE_PORT,
        ready_timeout: float = 15,
    ) -> None:
        self.namespace = namespace
        self.service = service
        self.local_port = local_port
        self.remote_port = remote_port
        self.ready_timeout = ready_timeout
        self._process: subprocess.Popen | None = None

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.local_port}"

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def __enter__(self) -> PortForward:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        """Launch the port-forward and wait until the local port accepts connections.

        Raises:
            SmokeTestError: If the local port is taken, kubectl exits early or
                the port never opens.
        """
        cmd = [
            "kubectl", "port-forward", "-n", self.namespace,
            f"svc/{self.service}", f"{self.local_port}:{self.remote_port}",
        ]
        if port_in_use(self.local_port):
            raise SmokeTestError(
                f"Local port {self.local_port} is already in use",
                hint="Stop whatever listens on it (e.g. docker compose) or pass --local-port",
            )
        logger.debug("Starting %s", " ".join(cmd))
        try:
            self._process = subprocess.Popen(
                cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True)
        except OSError as e:
            raise SmokeTestError(f"Failed to start port-forward: {e}") from e
        try:
            self._wait_ready()
        except BaseException:
            self.stop()
            raise
        console.print(f"[green]✓ Port forwarding svc/{self.service} -> {self.base_url}[/green]")

    def _wait_ready(self) -> None:
        @retry(
            stop=stop_after_delay(self.ready_timeout),
            wait=wait_fixed(FORWARD_POLL_INTERVAL_SECONDS),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        def _probe() -> None:
            self._check_alive()
            with socket.create_connection(("127.0.0.1", self.local_port), timeout=1):
                pass
            # kubectl exits when its bind fails, so the connect may have reached another listener
            self._check_alive()

        try:
            _probe()
        except OSError as e:
            raise SmokeTestError(
                f"Port-forward to svc/{self.service} not ready after {self.ready_timeout}s: {e}") from e

    def _check_alive(self) -> None:
        if self._process.poll() is not None:
            stderr = self._process.stderr.read() if self._process.stderr else ""
            raise SmokeTestError(f"Port-forward to svc/{self.service} exited: {stderr.strip()}")

    def stop(self) -> None:
        """Terminate the port-forward process if it is still running."""
        process, self._process = self._process, None
        if process is None:
            return
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=FORWARD_TERMINATE_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        if process.stderr:
            process.stderr.close()
        logger.debug("Port-forward to svc/%s stopped", self.service)


# ============================================================================
# Smoke test
# ============================================================================

@dataclass
class SmokeStep:
    """One endpoint check and its outcome."""

    name: str
    method: str
    path: str
    params: dict | None = None
    status_code: int | None = None
    passed: bool = False
    detail: str = ""


def smoke_steps(customer: str) -> list[SmokeStep]:
    """The fixed check sequence: health, create order, order status, statistics."""
    return [
        SmokeStep("Health check", "GET", HEALTH_PATH),
        SmokeStep("Create order", "POST", ORDER_PATH, {"name": customer}),
        SmokeStep("Order status", "GET", STATUS_PATH, {"name": customer}),
        SmokeStep("Coffee statistics", "GET", STATS_PATH),
    ]


def _order_id(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict) and body.get("id") is not None:
        return str(body["id"])
    return ""


def run_smoke_test(
    base_url: str,
    customer: str,
    timeout: float = 5,
    session: requests.Session | None = None,
) -> list[SmokeStep]:
    """Run the smoke checks in order, stopping at the first failure.

    Args:
        base_url: Service root, e.g. ``http://localhost:8080``.
        customer: Customer name used for the test order.
        timeout: Per-request timeout in seconds.
        session: HTTP session to use; a new one is created when omitted.

    Returns:
        The completed steps, all passed.

    Raises:
        SmokeTestError: On the first non-success response or transport error.
    """
    owns_session = session is None
    session = session or requests.Session()
    steps = smoke_steps(customer)
    try:
        for step in steps:
            url = f"{base_url.rstrip('/')}{step.path}"
            try:
                response = session.request(step.method, url, params=step.params, timeout=timeout)
            except requests.RequestException as e:
                console.print(f"[red]✗ {step.name}: FAILED ({e})[/red]")
                raise SmokeTestError(f"{step.name} failed: {e}") from e

            step.status_code = response.status_code
            if not response.ok:
                console.print(f"[red]✗ {step.name}: FAILED (HTTP {response.status_code})[/red]")
                logger.info("Response body: %s", response.text[:500])
                raise SmokeTestError(f"{step.name} failed: {step.method} {step.path} returned HTTP {response.status_code}")

            step.passed = True
            if step.path == ORDER_PATH:
                order_id = _order_id(response)
                step.detail = f"Order ID: {order_id}" if order_id else ""
            suffix = f" ({step.detail})" if step.detail else ""
            console.print(f"[green]✓ {step.name}: PASSED{suffix}[/green]")
    finally:
        if owns_session:
            session.close()
    return steps


def smoke_test(namespace: str, smoke_cfg: SmokeConfig) -> list[SmokeStep]:
    """Run the smoke test against the configured URL or through a port-forward.

    Args:
        namespace: Namespace of the service.
        smoke_cfg: Smoke test configuration.

    Returns:
        The completed steps.

    Raises:
        SmokeTestError: If the port-forward or any check fails.
    """
    console.print(Panel.fit("Testing application endpoints", style="bold blue"))
    if smoke_cfg.base_url:
        steps = run_smoke_test(smoke_cfg.base_url, smoke_cfg.customer_name, smoke_cfg.request_timeout)
    else:
        with PortForward(namespace, SERVICE_NAME, smoke_cfg.local_port, SERVICE_PORT,
                         ready_timeout=smoke_cfg.forward_ready_timeout) as forward:
            steps = run_smoke_test(forward.base_url, smoke_cfg.customer_name, smoke_cfg.request_timeout)
    console.print("[green]✅ All tests passed![/green]")
    return steps
