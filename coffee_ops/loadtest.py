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

"""Burst load generator used to exercise the application's autoscaler."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import requests
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from coffee_ops import console
from coffee_ops.constants import ORDER_PATH


@dataclass(frozen=True)
class LoadSummary:
    succeeded: int
    failed: int


def _place_order(base_url: str, index: int, timeout: float) -> tuple[int, bool, str | None]:
    """POST a single order and report (index, success, error)."""
    try:
        response = requests.post(
            f"{base_url.rstrip('/')}{ORDER_PATH}", params={"name": f"load-{index}"}, timeout=timeout)
    except requests.RequestException as e:
        return index, False, str(e)
    if response.ok:
        return index, True, None
    return index, False, f"HTTP {response.status_code}"


def run_load(base_url: str, requests_total: int, concurrency: int, timeout: float = 5) -> LoadSummary:
    """Fire *requests_total* order requests with at most *concurrency* in flight.

    Outcomes are printed as they complete; nothing is asserted.

    Args:
        base_url: Service root, e.g. ``http://localhost:8080``.
        requests_total: Number of requests to send.
        concurrency: Maximum concurrent requests.
        timeout: Per-request timeout in seconds.

    Returns:
        Count of successful and failed requests.
    """
    console.print(Panel.fit(f"Sending {requests_total} orders ({concurrency} concurrent)", style="bold blue"))
    succeeded = failed = 0
    with Progress(
        SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
        BarColumn(), TaskProgressColumn(), console=console,
    ) as progress:
        task = progress.add_task("[cyan]Placing orders...", total=requests_total)
        with ThreadPoolExecutor(max_workers=max(1, concurrency)) as executor:
            futures = [
                executor.submit(_place_order, base_url, i, timeout)
                for i in range(requests_total)
            ]
            for future in as_completed(futures):
                index, ok, error = future.result()
                progress.advance(task)
                if ok:
                    succeeded += 1
                else:
                    failed += 1
                    console.print(f"[red]✗ load-{index} - {error}[/red]")
    style = "green" if not failed else "yellow"
    console.print(f"[{style}]Load finished: {succeeded} succeeded, {failed} failed[/{style}]")
    console.print("Run 'coffee-ops hpa' or 'coffee-ops monitor' to watch the autoscaler react")
    return LoadSummary(succeeded=succeeded, failed=failed)
