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

"""Tests for the command-line surface and exit-code mapping."""

import signal
import sys
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

import cli
from coffee_ops.errors import (
    EXIT_PREREQUISITE,
    EXIT_SMOKE,
    EXIT_UNEXPECTED,
    EXIT_USAGE,
    PrerequisiteError,
    SmokeTestError,
)

runner = CliRunner()


def _run_main(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["coffee-ops", *args])
    previous = signal.getsignal(signal.SIGTERM)
    try:
        with pytest.raises(SystemExit) as exc:
            cli.main()
        assert signal.getsignal(signal.SIGTERM) is cli._exit_on_signal
    finally:
        signal.signal(signal.SIGTERM, previous)
    return exc.value.code


class TestUsage:
    def test_help_lists_commands(self):
        result = runner.invoke(cli.app, ["help"])
        assert result.exit_code == 0
        for command in ("setup", "deploy", "test", "full", "status", "cleanup", "cluster"):
            assert command in result.output

    def test_unknown_command(self):
        result = runner.invoke(cli.app, ["brew"])
        assert result.exit_code == 2

    def test_invalid_backend(self):
        result = runner.invoke(cli.app, ["deploy", "--backend", "k3s"])
        assert result.exit_code == 2


class TestDeploy:
    def test_unreachable_cluster_applies_nothing(self, kubectl, fake_sh):
        kubectl.on("cluster-info", ok=False, stderr="connection refused")
        result = runner.invoke(cli.app, ["deploy", "--skip-build"])
        assert result.exit_code != 0
        assert isinstance(result.exception, PrerequisiteError)
        assert kubectl.called("apply") == []
        assert kubectl.called("create") == []

    def test_main_maps_prerequisite_exit_code(self, kubectl, fake_sh, monkeypatch):
        kubectl.on("cluster-info", ok=False)
        assert _run_main(monkeypatch, "deploy", "--skip-build") == EXIT_PREREQUISITE
        assert kubectl.called("apply") == []

    def test_options_reach_orchestrator(self):
        with patch("coffee_ops.commands.deploy_cmd.run_deploy") as run:
            result = runner.invoke(cli.app, [
                "deploy", "-n", "coffee-dev", "--wait-for", "deployment", "--timeout", "60", "--skip-build"])
        assert result.exit_code == 0, result.output
        cluster_cfg, deploy_cfg, db_cfg = run.call_args.args
        assert deploy_cfg.namespace == "coffee-dev"
        assert deploy_cfg.wait_mode.value == "deployment"
        assert deploy_cfg.readiness_timeout == 60
        assert deploy_cfg.skip_build is True

    def test_out_of_range_timeout_rejected(self):
        with patch("coffee_ops.commands.deploy_cmd.run_deploy") as run:
            result = runner.invoke(cli.app, ["deploy", "--timeout", "-5", "--attempts", "0", "--skip-build"])
        assert result.exit_code == 2
        run.assert_not_called()

    def test_invalid_namespace_is_usage_error(self, monkeypatch):
        with patch("coffee_ops.commands.deploy_cmd.run_deploy") as run:
            assert _run_main(monkeypatch, "deploy", "-n", "Not_A_Namespace", "--skip-build") == EXIT_USAGE
        run.assert_not_called()

    def test_explicit_backend_must_match_context(self, kubectl, fake_sh, monkeypatch):
        kubectl.on("config", "current-context", stdout="kind-other\n")
        code = _run_main(monkeypatch, "deploy", "--backend", "kind", "--cluster-name", "demo", "--skip-build")
        assert code == EXIT_PREREQUISITE
        assert kubectl.called("apply") == []
        assert kubectl.called("create") == []

    def test_explicit_backend_matching_context(self, kubectl, fake_sh):
        kubectl.on("config", "current-context", stdout="kind-demo\n")
        with patch("coffee_ops.orchestrator.deploy_tiers") as deploy, \
                patch("coffee_ops.orchestrator.report_status"):
            result = runner.invoke(cli.app, ["deploy", "--backend", "kind", "--cluster-name", "demo", "--skip-build"])
        assert result.exit_code == 0, result.output
        deploy.assert_called_once()

    def test_full_runs_deploy_then_smoke(self, kubectl, fake_sh):
        with patch("coffee_ops.orchestrator.run_deploy") as deploy, \
                patch("coffee_ops.orchestrator.smoke_test", return_value=[]) as smoke, \
                patch("coffee_ops.orchestrator.report_hpa") as hpa:
            result = runner.invoke(cli.app, ["full", "--customer", "Alice"])
        assert result.exit_code == 0, result.output
        deploy.assert_called_once()
        assert smoke.call_args.args[1].customer_name == "Alice"
        hpa.assert_called_once_with("coffee-queue")


class TestSmokeCommand:
    def test_smoke_failure_exit_code(self, monkeypatch):
        with patch("coffee_ops.commands.smoke_cmd.run_test", side_effect=SmokeTestError("Create order failed")):
            assert _run_main(monkeypatch, "test") == EXIT_SMOKE

    def test_base_url_needs_no_kubectl(self, kubectl, fake_sh):
        with patch("coffee_ops.orchestrator.smoke_test", return_value=[]) as smoke:
            result = runner.invoke(cli.app, ["test", "--base-url", "http://10.0.0.5:8080"])
        assert result.exit_code == 0, result.output
        assert kubectl.calls == []
        fake_sh.which.assert_not_called()
        assert smoke.call_args.args[1].base_url == "http://10.0.0.5:8080"


class TestOtherCommands:
    def test_setup_uses_prompted_backend(self):
        with patch("coffee_ops.commands.deploy_cmd.run_setup") as run:
            result = runner.invoke(cli.app, ["setup"], input="minikube\n")
        assert result.exit_code == 0, result.output
        assert run.call_args.args[0].value == "minikube"

    def test_setup_rejects_unknown_backend(self):
        with patch("coffee_ops.commands.deploy_cmd.run_setup") as run:
            result = runner.invoke(cli.app, ["setup"], input="k3s\n")
        assert result.exit_code == 2
        run.assert_not_called()

    def test_cleanup_yes(self, kubectl, fake_sh):
        kubectl.on("config", "current-context", stdout="kind-demo\n")
        result = runner.invoke(cli.app, ["cleanup", "--yes"])
        assert result.exit_code == 0, result.output
        assert kubectl.called("delete", "namespace", "coffee-queue")

    def test_scale(self, kubectl, fake_sh):
        result = runner.invoke(cli.app, ["scale", "--replicas", "3"])
        assert result.exit_code == 0, result.output
        assert kubectl.called("scale", "deployment", "coffee-queue-app")

    def test_unexpected_error_exit_code(self, kubectl, fake_sh, monkeypatch):
        kubectl.on("scale", ok=False, stderr="boom")
        assert _run_main(monkeypatch, "scale", "--replicas", "3") == EXIT_UNEXPECTED

    def test_cluster_delete_needs_backend(self, kubectl, fake_sh):
        kubectl.on("config", "current-context", stdout="gke_prod\n")
        result = runner.invoke(cli.app, ["cluster", "delete"])
        assert result.exit_code == 2
