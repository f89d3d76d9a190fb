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

"""
Pytest configuration and shared fixtures.

Every external CLI is faked: ``run_kubectl`` is replaced by a scripted
:class:`FakeKubectl`, and the ``sh`` module references inside coffee_ops are
replaced by mocks that still expose sh's real exception classes.
"""

import json
import os
from unittest.mock import MagicMock

import pytest
import sh

from coffee_ops.config import DeployConfig

KUBECTL_MODULES = (
    "coffee_ops.utils",
    "coffee_ops.prober",
    "coffee_ops.cluster",
    "coffee_ops.manifests",
    "coffee_ops.status",
    "coffee_ops.teardown",
)


class FakeKubectl:
    """Scripted stand-in for ``run_kubectl``.

    Rules match on an argument prefix; the most recently added rule wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls = []
        self.rules = []

    def respond(self, *prefix, responder):
        """Answer matching commands with ``responder(args)``."""
        self.rules.insert(0, (list(prefix), responder))
        return self

    def on(self, *prefix, ok=True, stdout="", stderr=""):
        return self.respond(*prefix, responder=lambda args: (ok, stdout, stderr))

    def on_json(self, *prefix, doc):
        return self.on(*prefix, stdout=json.dumps(doc))

    def on_sequence(self, *prefix, results):
        """Answer successive matching commands from *results*, repeating the last."""
        remaining = list(results)

        def responder(args):
            return remaining.pop(0) if len(remaining) > 1 else remaining[0]

        return self.respond(*prefix, responder=responder)

    def __call__(self, args, timeout=30):
        self.calls.append(list(args))
        for prefix, responder in self.rules:
            if args[:len(prefix)] == prefix:
                return responder(list(args))
        return True, "", ""

    def called(self, *prefix):
        return [c for c in self.calls if c[:len(prefix)] == list(prefix)]

    def index(self, *prefix):
        for i, call in enumerate(self.calls):
            if call[:len(prefix)] == list(prefix):
                return i
        raise AssertionError(f"kubectl {' '.join(prefix)} was never called")


def make_sh_error(stderr=b"boom", stdout=b"", cmd="tool"):
    """Build a real ``sh.ErrorReturnCode_1`` instance."""
    return sh.ErrorReturnCode_1(cmd, stdout, stderr)


def make_fake_sh():
    fake = MagicMock()
    fake.ErrorReturnCode = sh.ErrorReturnCode
    fake.ErrorReturnCode_1 = sh.ErrorReturnCode_1
    fake.CommandNotFound = sh.CommandNotFound
    fake.which.side_effect = lambda cmd: f"/usr/local/bin/{cmd}"
    return fake


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host env vars and .env files out of settings resolution."""
    for var in ("K8S_NAMESPACE", "CLUSTER_NAME", "CLEANUP_CLUSTER"):
        monkeypatch.delenv(var, raising=False)
    for var in list(os.environ):
        if var.startswith("COFFEE_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def kubectl(monkeypatch):
    """Replace run_kubectl everywhere it is imported."""
    fake = FakeKubectl()
    for module in KUBECTL_MODULES:
        monkeypatch.setattr(f"{module}.run_kubectl", fake)
    return fake


@pytest.fixture
def fake_sh(monkeypatch):
    """Replace the ``sh`` module in every coffee_ops module that shells out."""
    fake = make_fake_sh()
    for module in ("coffee_ops.utils", "coffee_ops.cluster", "coffee_ops.status", "coffee_ops.teardown"):
        monkeypatch.setattr(f"{module}.sh", fake)
    return fake


@pytest.fixture
def manifests_dir(tmp_path):
    """A manifests tree with the postgres/ and app/ tier directories."""
    root = tmp_path / "k8s"
    for tier in ("postgres", "app"):
        (root / tier).mkdir(parents=True)
        (root / tier / "deployment.yaml").write_text("kind: Deployment\n")
    return root


@pytest.fixture
def deploy_cfg(manifests_dir):
    return DeployConfig(
        manifests_dir=manifests_dir,
        readiness_timeout=5,
        readiness_attempts=3,
        readiness_retry_wait=0,
    )
