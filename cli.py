#!/usr/bin/env python3
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
cli.py - Coffee Queue deployment CLI for local Kubernetes clusters.

Commands:
    setup      Set up a local cluster (docker-desktop, minikube, kind)
    deploy     Build images and deploy PostgreSQL, then the application
    test       Smoke test the deployed application
    full       deploy + test + autoscaler check
    status     Show pods, services, deployments, HPA, usage and events
    hpa        Show autoscaler state
    logs       View application or database logs
    monitor    Live resource usage and HPA view
    scale      Scale application replicas
    port       Port-forward to the application service
    load       Send a burst of orders to exercise the autoscaler
    cleanup    Delete the namespace (and optionally the cluster)
    cluster    create / delete / load-images

Environment Variables:
    All settings can be overridden via COFFEE_* environment variables or a
    .env file in the working directory:
    - COFFEE_NAMESPACE or K8S_NAMESPACE (default: coffee-queue)
    - COFFEE_CLUSTER_NAME or CLUSTER_NAME (default: coffee-queue-cluster)
    - COFFEE_BACKEND (docker-desktop, minikube, kind; default: from context)
    - COFFEE_DB_HOST, COFFEE_DB_PORT, COFFEE_DB_NAME, COFFEE_DB_USER, COFFEE_DB_PASSWORD
    - COFFEE_ASSUME_YES, CLEANUP_CLUSTER (cleanup without prompting)

Examples:
    # Create a kind cluster and deploy everything, then smoke test it
    ./cli.py setup --backend kind
    ./cli.py full

    # Redeploy manifests only, waiting on deployment availability
    ./cli.py deploy --skip-build --wait-for deployment --timeout 300

    # Tear everything down without prompts
    COFFEE_ASSUME_YES=true ./cli.py cleanup --cluster
"""

from __future__ import annotations

import logging
import signal
import sys

import typer
from pydantic import ValidationError

from coffee_ops import console
from coffee_ops.commands import cleanup_cmd, cluster_cmd, deploy_cmd, observe_cmd, smoke_cmd
from coffee_ops.errors import EXIT_UNEXPECTED, EXIT_USAGE, CoffeeOpsError

app = typer.Typer(
    help="Coffee Queue deployment tool for local Kubernetes clusters.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command("help")
def help_cmd(ctx: typer.Context) -> None:
    """Show this help message."""
    typer.echo(ctx.parent.get_help())


app.command()(deploy_cmd.setup)
app.command()(deploy_cmd.deploy)
app.command()(deploy_cmd.full)
app.command("test")(smoke_cmd.smoke)
app.command()(smoke_cmd.load)
app.command()(observe_cmd.status)
app.command()(observe_cmd.hpa)
app.command()(observe_cmd.logs)
app.command()(observe_cmd.monitor)
app.command()(observe_cmd.scale)
app.command("port")(observe_cmd.port)
app.command()(cleanup_cmd.cleanup)
app.add_typer(cluster_cmd.app, name="cluster")


def _exit_on_signal(signum, frame) -> None:
    """Turn SIGTERM into SystemExit so context managers release their resources."""
    sys.exit(128 + signum)


def install_signal_handlers() -> None:
    signal.signal(signal.SIGTERM, _exit_on_signal)


def main() -> None:
    """Console entry point: run the CLI and map failures to exit codes."""
    install_signal_handlers()
    try:
        app()
    except CoffeeOpsError as e:
        console.print(f"[red]❌ {e}[/red]")
        if e.hint:
            console.print(f"[yellow]   {e.hint}[/yellow]")
        sys.exit(e.exit_code)
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"])
            console.print(f"[red]❌ Invalid value for {field}: {err['msg']}[/red]")
        sys.exit(EXIT_USAGE)
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(EXIT_UNEXPECTED)


if __name__ == "__main__":
    main()
