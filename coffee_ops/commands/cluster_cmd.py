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

"""Cluster subcommands (create, delete, load-images)."""

from __future__ import annotations

import typer

from coffee_ops import console
from coffee_ops.cluster import (
    build_images,
    delete_cluster,
    deployment_images,
    ensure_cluster,
    load_images,
    resolve_backend,
)
from coffee_ops.config import Backend, ClusterConfig, with_overrides

app = typer.Typer(help="Manage the local cluster.", no_args_is_help=True)


def _backend_or_fail(cluster_cfg: ClusterConfig) -> tuple[Backend, str]:
    backend, name = resolve_backend(cluster_cfg)
    if backend is None:
        raise typer.BadParameter("cannot infer the cluster backend from the current context", param_hint="--backend")
    return backend, name


@app.command()
def create(
    backend: Backend = typer.Option(Backend.KIND, "--backend", case_sensitive=False, help="Cluster backend"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster name / minikube profile"),
    retries: int | None = typer.Option(None, "--retries", min=1, max=10, help="Cluster creation attempts"),
) -> None:
    """Create the cluster if it does not exist and switch kubectl to it."""
    cluster_cfg = with_overrides(ClusterConfig(), cluster_name=cluster_name, create_retries=retries)
    ensure_cluster(backend, cluster_cfg)


@app.command()
def delete(
    backend: Backend | None = typer.Option(None, "--backend", case_sensitive=False, help="Cluster backend"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster name / minikube profile"),
) -> None:
    """Delete the cluster (absent clusters are not an error)."""
    cluster_cfg = with_overrides(ClusterConfig(), backend=backend, cluster_name=cluster_name)
    resolved, name = _backend_or_fail(cluster_cfg)
    delete_cluster(resolved, name)


@app.command("load-images")
def load_images_cmd(
    backend: Backend | None = typer.Option(None, "--backend", case_sensitive=False, help="Cluster backend"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster name / minikube profile"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Load images already present on the host"),
) -> None:
    """Build the application images and load them into the cluster."""
    cluster_cfg = with_overrides(ClusterConfig(), backend=backend, cluster_name=cluster_name)
    resolved, name = _backend_or_fail(cluster_cfg)
    images = deployment_images()
    if skip_build:
        console.print("[yellow]   Skipping image build[/yellow]")
    else:
        build_images(images)
    load_images(resolved, name, images)
