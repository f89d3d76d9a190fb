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

"""Error types raised by coffee_ops workflows.

Every error carries the process exit code the CLI uses when it aborts, and an
optional remediation hint printed under the message.
"""

from __future__ import annotations

EXIT_UNEXPECTED = 1
EXIT_USAGE = 2
EXIT_PREREQUISITE = 3
EXIT_PROVISIONING = 4
EXIT_READINESS = 5
EXIT_SMOKE = 6


class CoffeeOpsError(RuntimeError):
    """Base class for operator-facing failures."""

    exit_code = EXIT_UNEXPECTED

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class PrerequisiteError(CoffeeOpsError):
    """A required tool is missing or the cluster cannot be reached."""

    exit_code = EXIT_PREREQUISITE


class ProvisioningError(CoffeeOpsError):
    """Cluster creation, image build or image load failed."""

    exit_code = EXIT_PROVISIONING


class ReadinessTimeoutError(CoffeeOpsError):
    """A tier did not become ready within its bounded wait."""

    exit_code = EXIT_READINESS


class SmokeTestError(CoffeeOpsError):
    """An endpoint check returned a non-success response."""

    exit_code = EXIT_SMOKE
