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

"""Utility functions for kubectl invocation, JSON parsing, and command checks."""

from __future__ import annotations

import json
import subprocess

import sh

from coffee_ops import logger
from coffee_ops.errors import PrerequisiteError


def require_command(cmd: str, hint: str | None = None) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.
        hint: Remediation text shown to the operator when it is missing.

    Raises:
        PrerequisiteError: If the command is not found.
    """
    if sh.which(cmd) is None:
        raise PrerequisiteError(
            f"Required command '{cmd}' not found. Please install it first.", hint=hint)


def run_kubectl(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because callers branch on the exit status and
    inspect stderr separately (e.g. ``AlreadyExists`` or ``NotFound``).

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    logger.debug("kubectl %s", " ".join(args))
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def kubectl_json(args: list[str], timeout: int = 30) -> dict | None:
    """Run a kubectl read command with ``-o json`` and parse the output.

    Args:
        args: kubectl arguments without the output flag.
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Parsed JSON document, or None if kubectl failed or printed invalid JSON.
    """
    ok, stdout, stderr = run_kubectl([*args, "-o", "json"], timeout=timeout)
    if not ok:
        logger.debug("kubectl %s failed: %s", " ".join(args), stderr.strip())
        return None
    try:
        return json.loads(stdout)
    except json.JSONDecodeError:
        logger.debug("kubectl %s returned non-JSON output", " ".join(args))
        return None


def kubectl_items(kind: str, namespace: str, selector: str | None = None) -> list[dict]:
    """List resources of *kind* in *namespace* as parsed JSON items.

    Args:
        kind: Resource kind accepted by ``kubectl get`` (e.g. ``pods``).
        namespace: Namespace to query.
        selector: Optional label selector (e.g. ``app=postgres``).

    Returns:
        The ``items`` list, empty if the query failed.
    """
    args = ["get", kind, "-n", namespace]
    if selector:
        args += ["-l", selector]
    doc = kubectl_json(args)
    if not doc:
        return []
    return doc.get("items", [])


def current_context() -> str | None:
    """Return the active kubectl context name, or None if none is set."""
    ok, stdout, _ = run_kubectl(["config", "current-context"])
    context = stdout.strip()
    return context if ok and context else None


def tail_lines(text: str, limit: int) -> str:
    """Keep the last *limit* non-empty lines of *text*."""
    lines = [line for line in text.splitlines() if line.strip()]
    return "\n".join(lines[-limit:])
