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

"""Cleanup command."""

from __future__ import annotations

import typer

from coffee_ops.cluster import deployment_images, resolve_backend
from coffee_ops.config import Backend, ClusterConfig, DeployConfig, TeardownConfig, with_overrides
from coffee_ops.prober import probe_environment
from coffee_ops.teardown import teardown


def cleanup(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Kubernetes namespace"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    cluster: bool = typer.Option(False, "--cluster", help="Also delete the cluster"),
    images: bool = typer.Option(False, "--images", help="Also remove local Docker images, containers and compose volumes"),
    backend: Backend | None = typer.Option(None, "--backend", case_sensitive=False, help="Cluster backend"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster name / minikube profile"),
) -> None:
    """Delete all Coffee Queue resources (and optionally the cluster)."""
    probe_environment(need_docker=images)
    deploy_cfg = with_overrides(DeployConfig(), namespace=namespace)
    teardown_cfg = with_overrides(TeardownConfig(), assume_yes=yes or None)
    cluster_cfg = with_overrides(ClusterConfig(), backend=backend, cluster_name=cluster_name)
    resolved, name = resolve_backend(cluster_cfg)
    teardown(
        deploy_cfg.namespace,
        teardown_cfg,
        backend=resolved,
        cluster_name=name,
        delete_cluster_requested=cluster,
        images=deployment_images() if images else None,
    )
