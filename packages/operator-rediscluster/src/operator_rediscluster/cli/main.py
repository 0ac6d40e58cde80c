"""Operator CLI - self-healing operator for Redis Cluster on Kubernetes."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from operator_rediscluster.config import OperatorSettings, SplitRecovery
from operator_rediscluster.factory import create_admin, create_kube_http, create_reconcile_loop

app = typer.Typer(
    name="redis-operator",
    help="Self-healing operator for Redis Cluster on Kubernetes",
    no_args_is_help=True,
)

console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@app.command("run")
def run_operator(
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Namespace to watch (default: all namespaces)"
    ),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Clusters reconciled concurrently"),
    interval: float | None = typer.Option(None, "--interval", "-i", help="Resync interval in seconds"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute corrective actions without applying them"),
    split_recovery: SplitRecovery | None = typer.Option(
        None, "--split-recovery", help="How to repair a cluster split"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Run the reconcile loop.

    Reconciles every RedisCluster until interrupted with Ctrl+C. Options
    override the REDIS_OPERATOR_* environment variables.
    """
    configure_logging(verbose)

    overrides = {
        "namespace": namespace,
        "workers": workers,
        "resync_interval_seconds": interval,
        "split_recovery": split_recovery,
    }
    settings = OperatorSettings(**{k: v for k, v in overrides.items() if v is not None})
    if dry_run:
        settings = settings.model_copy(update={"dry_run": True})

    console.print(f"Starting redis operator (namespace: {settings.namespace or 'all'})")
    console.print(f"  API server: {settings.api_server}")
    console.print(f"  Workers: {settings.workers}, resync: {settings.resync_interval_seconds}s")
    console.print(f"  Dry run: {settings.dry_run}")

    async def _run() -> None:
        kube_http = create_kube_http(settings)
        admin = create_admin(settings)
        loop = create_reconcile_loop(settings, kube_http=kube_http, admin=admin)
        try:
            await loop.run()
        finally:
            await admin.close()
            await kube_http.aclose()

    try:
        asyncio.run(_run())
    except Exception as e:
        console.print(f"[red]Operator stopped with an error: {e}[/red]")
        raise typer.Exit(1)


@app.command("check")
def check_cluster(
    namespace: str = typer.Argument(..., help="Namespace of the RedisCluster"),
    name: str = typer.Argument(..., help="Name of the RedisCluster"),
    apply: bool = typer.Option(False, "--apply", help="Apply the corrective action (default: dry run)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Run a single reconcile tick for one cluster.

    By default nothing is changed: the tick reports which action the
    sanity checks would take and the resource status is left as is.
    """
    configure_logging(verbose)
    settings = OperatorSettings(namespace=namespace, dry_run=not apply)

    async def _check():
        kube_http = create_kube_http(settings)
        admin = create_admin(settings)
        loop = create_reconcile_loop(settings, kube_http=kube_http, admin=admin)
        try:
            return await loop.reconcile(f"{namespace}/{name}")
        finally:
            await admin.close()
            await kube_http.aclose()

    try:
        result = asyncio.run(_check())
    except Exception as e:
        console.print(f"[red]Check failed: {e}[/red]")
        raise typer.Exit(1)

    if result.deleted:
        console.print(f"RedisCluster {namespace}/{name} not found")
        raise typer.Exit(1)

    if result.status is not None:
        table = Table(title=f"{namespace}/{name} ({result.status.phase.value})")
        table.add_column("Node")
        table.add_column("Address")
        table.add_column("Role")
        table.add_column("Slots")
        table.add_column("Pod")
        table.add_column("Flags")
        for node in result.status.nodes:
            table.add_row(
                node.id[:12],
                f"{node.ip}:{node.port}",
                node.role,
                node.slots,
                node.pod_name,
                ",".join(node.flags),
            )
        console.print(table)

    if result.skipped:
        console.print("[yellow]Sanity checks skipped: not enough nodes reachable[/yellow]")
    elif result.record is not None:
        prefix = "Would apply" if result.record.dry_run else "Applied"
        console.print(f"[bold]{prefix}[/bold] {result.record.check}: {result.record.description}")
    else:
        console.print("[green]No corrective action needed[/green]")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
