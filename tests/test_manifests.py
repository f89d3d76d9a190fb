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

"""Tests for tiered manifest apply and readiness gating."""

import base64
from pathlib import Path

import pytest
import yaml

from coffee_ops.config import DatabaseConfig, WaitMode
from coffee_ops.errors import EXIT_READINESS, ProvisioningError, ReadinessTimeoutError
from coffee_ops.manifests import (
    TierState,
    apply_manifest,
    build_tiers,
    database_secret_manifest,
    deploy_tiers,
    ensure_namespace,
    wait_tier_ready,
)

DB_WAIT = ("wait", "--for=condition=ready", "pod", "-l", "app=postgres")
APP_WAIT = ("wait", "--for=condition=ready", "pod", "-l", "app=coffee-queue-app")


def _apply_target(call):
    return call[call.index("-f") + 1]


class TestDeployTiers:
    def test_database_before_app(self, kubectl, deploy_cfg):
        tiers = deploy_tiers(deploy_cfg, DatabaseConfig())

        assert [t.state for t in tiers] == [TierState.READY, TierState.READY]
        applies = [_apply_target(c) for c in kubectl.called("apply")]
        db_dir = str(deploy_cfg.manifests_dir / "postgres")
        app_dir = str(deploy_cfg.manifests_dir / "app")
        assert applies[-2:] == [db_dir, app_dir]
        # the app tier is applied only after the database wait succeeded
        db_wait = kubectl.index(*DB_WAIT)
        app_apply = next(i for i, c in enumerate(kubectl.calls) if c[:3] == ["apply", "-f", app_dir])
        assert db_wait < app_apply

    def test_secret_applied_before_database(self, kubectl, deploy_cfg):
        deploy_tiers(deploy_cfg, DatabaseConfig())
        applies = kubectl.called("apply")
        assert applies[0][2].endswith(".yaml")
        assert _apply_target(applies[1]) == str(deploy_cfg.manifests_dir / "postgres")

    def test_database_timeout_blocks_app(self, kubectl, deploy_cfg):
        kubectl.on(*DB_WAIT, ok=False, stderr="timed out waiting for the condition")
        tiers = build_tiers(deploy_cfg)

        with pytest.raises(ReadinessTimeoutError) as exc:
            deploy_tiers(deploy_cfg, DatabaseConfig(), tiers)

        assert exc.value.exit_code == EXIT_READINESS
        assert "PostgreSQL" in str(exc.value)
        assert tiers[0].state is TierState.TIMED_OUT
        assert tiers[1].state is TierState.NOT_APPLIED
        app_dir = str(deploy_cfg.manifests_dir / "app")
        assert [c for c in kubectl.called("apply") if _apply_target(c) == app_dir] == []
        assert len(kubectl.called(*DB_WAIT)) == deploy_cfg.readiness_attempts

    def test_timeout_dumps_diagnostics(self, kubectl, deploy_cfg):
        kubectl.on(*APP_WAIT, ok=False)
        kubectl.on_json("get", "events", doc={"items": []})
        with pytest.raises(ReadinessTimeoutError):
            deploy_tiers(deploy_cfg, DatabaseConfig())
        assert kubectl.called("describe", "pods", "-l", "app=coffee-queue-app")
        assert kubectl.called("logs", "-l", "app=coffee-queue-app")
        assert kubectl.called("get", "events")

    def test_ready_on_second_attempt(self, kubectl, deploy_cfg):
        kubectl.on_sequence(*DB_WAIT, results=[(False, "", "not yet"), (True, "", "")])
        tiers = build_tiers(deploy_cfg)
        wait_tier_ready(tiers[0], deploy_cfg.namespace, deploy_cfg)
        assert tiers[0].state is TierState.READY
        assert len(kubectl.called(*DB_WAIT)) == 2

    def test_missing_manifests(self, kubectl, deploy_cfg, manifests_dir):
        (manifests_dir / "app" / "deployment.yaml").unlink()
        (manifests_dir / "app").rmdir()
        with pytest.raises(ProvisioningError, match="not found"):
            deploy_tiers(deploy_cfg, DatabaseConfig())

    def test_apply_failure(self, kubectl, deploy_cfg):
        kubectl.on("apply", "-f", str(deploy_cfg.manifests_dir / "postgres"), ok=False, stderr="invalid spec")
        with pytest.raises(ProvisioningError, match="invalid spec"):
            deploy_tiers(deploy_cfg, DatabaseConfig())
        assert kubectl.called("wait") == []

    def test_deployment_wait_mode(self, kubectl, deploy_cfg):
        cfg = deploy_cfg.model_copy(update={"wait_mode": WaitMode.DEPLOYMENT})
        deploy_tiers(cfg, DatabaseConfig())
        waits = kubectl.called("wait")
        assert waits[0][:3] == ["wait", "--for=condition=available", "deployment/postgres"]
        assert waits[1][:3] == ["wait", "--for=condition=available", "deployment/coffee-queue-app"]
        assert all(w[-1] == f"--timeout={cfg.readiness_timeout}s" for w in waits)


class TestNamespace:
    def test_existing_namespace_not_recreated(self, kubectl):
        ensure_namespace("coffee-queue")
        assert kubectl.called("create") == []

    def test_creates_missing_namespace(self, kubectl):
        kubectl.on("get", "namespace", ok=False, stderr="NotFound")
        ensure_namespace("coffee-queue")
        assert kubectl.called("create", "namespace", "coffee-queue")

    def test_create_race_tolerated(self, kubectl):
        kubectl.on("get", "namespace", ok=False)
        kubectl.on("create", "namespace", ok=False, stderr='namespaces "coffee-queue" AlreadyExists')
        ensure_namespace("coffee-queue")

    def test_create_failure(self, kubectl):
        kubectl.on("get", "namespace", ok=False)
        kubectl.on("create", "namespace", ok=False, stderr="forbidden")
        with pytest.raises(ProvisioningError, match="forbidden"):
            ensure_namespace("coffee-queue")


class TestSecret:
    def test_manifest_contents(self):
        db_cfg = DatabaseConfig(host="db", port=6543, name="orders", user="barista", password="pw")
        manifest = database_secret_manifest("coffee-queue", db_cfg)
        assert manifest["kind"] == "Secret"
        assert manifest["metadata"] == {"name": "coffee-queue-db", "namespace": "coffee-queue"}
        decoded = {k: base64.b64decode(v).decode() for k, v in manifest["data"].items()}
        assert decoded == {
            "DB_HOST": "db",
            "DB_PORT": "6543",
            "POSTGRES_DB": "orders",
            "POSTGRES_USER": "barista",
            "POSTGRES_PASSWORD": "pw",
        }

    def test_apply_manifest_cleans_up_temp_file(self, kubectl):
        seen = {}

        def capture(args):
            seen["path"] = Path(args[2])
            seen["doc"] = yaml.safe_load(seen["path"].read_text())
            return True, "", ""

        kubectl.respond("apply", responder=capture)
        apply_manifest(database_secret_manifest("coffee-queue", DatabaseConfig()), "coffee-queue")
        assert seen["doc"]["kind"] == "Secret"
        assert kubectl.calls[0][3:] == ["-n", "coffee-queue"]
        assert not seen["path"].exists()

    def test_apply_manifest_failure(self, kubectl):
        kubectl.on("apply", ok=False, stderr="denied")
        with pytest.raises(ProvisioningError, match="Secret coffee-queue-db: denied"):
            apply_manifest(database_secret_manifest("coffee-queue", DatabaseConfig()), "coffee-queue")
