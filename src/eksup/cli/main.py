"""Main CLI entry point for eksup."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.table import Table

from eksup import __version__
from eksup.core.config import DEFAULT_CONFIG_PATH

if TYPE_CHECKING:
    from eksup.adapters.aws_adapter import AWSClientFactory
    from eksup.core.config import EksupConfig, PollingConfig
    from eksup.core.models import UpgradeRequest, UpgradeStatus
    from eksup.interfaces.event_recorder import EventRecorder
    from eksup.interfaces.state_store import StatusStore
    from eksup.notify.dispatcher import NotificationDispatcher
    from eksup.upgrade.reconciler import PhaseReconciler
    from eksup.upgrade.waiter import ProgressCallback
    from eksup.utils.metrics import MetricsRecorder

console = Console()


class EksupContext:
    """Shared context for CLI commands with lazy initialization."""

    def __init__(self, config_path: str):
        """Initialize context with config path.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path
        self._config: EksupConfig | None = None
        self._store: StatusStore | None = None
        self._cloud_factory: AWSClientFactory | None = None
        self._notifier: NotificationDispatcher | None = None

    @property
    def config(self) -> EksupConfig:
        """Get or create config lazily, configuring logging on first load."""
        if self._config is None:
            from eksup.core.config import EksupConfig
            from eksup.utils.logging import setup_logging

            self._config = EksupConfig.load(self.config_path)
            setup_logging(
                level=self._config.logging.level,
                format=self._config.logging.format,
                output=self._config.logging.output,
            )
        return self._config

    @property
    def store(self) -> StatusStore:
        """Get or create the configured status store lazily."""
        if self._store is None:
            from eksup.adapters import create_status_store

            self._store = create_status_store(self.config.store)
        return self._store

    @property
    def cloud_factory(self) -> AWSClientFactory:
        """Get or create the AWS client factory lazily."""
        if self._cloud_factory is None:
            from eksup.adapters.aws_adapter import AWSClientFactory

            self._cloud_factory = AWSClientFactory(
                profile=self.config.aws.profile,
                session_name=self.config.aws.session_name,
            )
        return self._cloud_factory

    @property
    def notifier(self) -> NotificationDispatcher:
        """Get or create the notification dispatcher lazily."""
        if self._notifier is None:
            from eksup.notify.dispatcher import NotificationDispatcher
            from eksup.notify.slack import SlackNotifier

            webhook_url = self.config.notifications.resolve_webhook_url()
            sender = (
                SlackNotifier(webhook_url, self.config.notifications.timeout_seconds)
                if webhook_url
                else None
            )
            self._notifier = NotificationDispatcher(sender)
        return self._notifier

    def build_reconciler(
        self,
        events: EventRecorder,
        polling: PollingConfig | None = None,
        metrics: MetricsRecorder | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PhaseReconciler:
        """Wire a reconciler from the configured collaborators."""
        from eksup.phases import default_executors
        from eksup.upgrade.reconciler import PhaseReconciler

        return PhaseReconciler(
            cloud_factory=self.cloud_factory,
            store=self.store,
            executors=default_executors(),
            metrics=metrics,
            notifier=self.notifier,
            events=events,
            config=self.config.reconciler,
            polling=polling or self.config.polling,
            on_progress=on_progress,
        )


def _load_request(path: str) -> UpgradeRequest:
    from eksup.core.exceptions import ConfigurationError
    from eksup.core.models import UpgradeRequest

    try:
        return UpgradeRequest.from_file(path)
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise SystemExit(1) from e


def _phase_style(status: UpgradeStatus) -> str:
    from eksup.core.models import UpgradePhase

    if status.phase == UpgradePhase.COMPLETED:
        return "green"
    if status.phase == UpgradePhase.FAILED:
        return "red"
    return "yellow"


def _print_status(request_id: str, status: UpgradeStatus) -> None:
    style = _phase_style(status)
    summary = Table(title=f"Upgrade status: {request_id}", show_header=False)
    summary.add_column("Field", style="bold")
    summary.add_column("Value")
    summary.add_row("Phase", f"[{style}]{status.phase.value}[/{style}]")
    summary.add_row("Current version", status.current_version or "-")
    summary.add_row("Upgrade path", " → ".join(status.upgrade_path) or "-")
    summary.add_row("Message", status.message or "-")
    summary.add_row("Started", status.started_at.isoformat() if status.started_at else "-")
    summary.add_row("Completed", status.completed_at.isoformat() if status.completed_at else "-")
    summary.add_row("Observed generation", str(status.observed_generation))
    if status.identity is not None:
        summary.add_row("Identity", f"{status.identity.arn} ({status.identity.account_id})")
    console.print(summary)

    if status.conditions:
        conditions = Table(title="Conditions")
        conditions.add_column("Type", style="cyan")
        conditions.add_column("Status")
        conditions.add_column("Reason")
        conditions.add_column("Message")
        for condition in status.conditions:
            conditions.add_row(
                condition.type, condition.status, condition.reason, condition.message or ""
            )
        console.print(conditions)

    components = [("Addon", c) for c in status.phases.addons] + [
        ("Nodegroup", c) for c in status.phases.nodegroups
    ]
    if components:
        table = Table(title="Components")
        table.add_column("Kind")
        table.add_column("Name", style="cyan")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Status")
        for kind, component in components:
            table.add_row(
                kind,
                component.name,
                component.current_version,
                component.target_version,
                component.status.value,
            )
        console.print(table)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(),
    default=DEFAULT_CONFIG_PATH,
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config: str) -> None:
    """eksup - declarative, resumable EKS cluster upgrades."""
    ctx.obj = EksupContext(config_path=config)


@cli.command()
@click.option("--current", required=True, help="Current Kubernetes version (e.g. 1.32)")
@click.option("--target", required=True, help="Target Kubernetes version (e.g. 1.34)")
def plan(current: str, target: str) -> None:
    """Show the control plane upgrade path between two versions."""
    from eksup.core.exceptions import InvalidVersionError, UpgradeNotPossibleError
    from eksup.upgrade.version import plan_upgrade_path

    try:
        path = plan_upgrade_path(current, target)
    except (InvalidVersionError, UpgradeNotPossibleError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise SystemExit(1) from e

    if not path:
        console.print(f"[green]✓ Already at {target}, nothing to upgrade[/green]")
        return

    console.print(f"[bold]Upgrade path[/bold]: {' → '.join([current, *path])}")
    console.print(f"{len(path)} control plane step(s)")


@cli.command()
@click.argument("request_file", type=click.Path(exists=True))
@click.option("--dry-run", is_flag=True, help="Plan and run preflight checks only")
@click.option("--metrics-port", type=int, default=None, help="Serve Prometheus metrics on port")
@click.pass_context
def upgrade(
    ctx: click.Context, request_file: str, dry_run: bool, metrics_port: int | None
) -> None:
    """Run an upgrade request to completion in the foreground."""
    import asyncio

    from eksup.core.models import UpgradePhase
    from eksup.events import ConsoleEventRecorder
    from eksup.upgrade.reconciler import AwaitExternalChange
    from eksup.utils.metrics import MetricsRecorder

    eksup_ctx: EksupContext = ctx.obj
    request = _load_request(request_file)
    if dry_run:
        request = request.model_copy(update={"dry_run": True})

    console.print("[bold blue]eksup upgrade[/bold blue]")
    console.print(f"Cluster: {request.cluster_name} ({request.region})")
    console.print(f"Target Version: {request.target_version}")
    console.print(f"Dry Run: {request.dry_run}\n")

    metrics = MetricsRecorder()
    if metrics_port:
        metrics.serve(metrics_port)

    reconciler = eksup_ctx.build_reconciler(
        events=ConsoleEventRecorder(console),
        polling=eksup_ctx.config.polling.model_copy(update={"blocking": True}),
        metrics=metrics,
        on_progress=lambda step: console.print(f"  [dim]{step.progress}[/dim]"),
    )

    async def _run_upgrade() -> UpgradeStatus | None:
        while True:
            directive = await reconciler.reconcile(request)
            if isinstance(directive, AwaitExternalChange):
                break
            if directive.seconds:
                console.print(f"  [dim]retrying in {directive.seconds:.0f}s[/dim]")
                await asyncio.sleep(directive.seconds)
        return await eksup_ctx.store.get(request.request_id)

    status = asyncio.run(_run_upgrade())
    if status is None:
        console.print("[red]✗ No status recorded[/red]")
        raise SystemExit(1)

    console.print()
    _print_status(request.request_id, status)
    if status.phase == UpgradePhase.FAILED:
        raise SystemExit(1)


@cli.command()
@click.argument("request_files", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--interval", type=float, default=1.0, help="Minimum seconds between reconciles of a request"
)
@click.pass_context
def watch(ctx: click.Context, request_files: tuple[str, ...], interval: float) -> None:
    """Reconcile several upgrade requests until all reach a terminal phase."""
    import asyncio

    from eksup.core.models import UpgradePhase
    from eksup.events import LoggingEventRecorder
    from eksup.upgrade.reconciler import AwaitExternalChange
    from eksup.utils.metrics import MetricsRecorder

    eksup_ctx: EksupContext = ctx.obj
    requests = [_load_request(path) for path in request_files]

    metrics = MetricsRecorder()
    if eksup_ctx.config.metrics.enabled:
        metrics.serve(eksup_ctx.config.metrics.port)

    reconciler = eksup_ctx.build_reconciler(events=LoggingEventRecorder(), metrics=metrics)

    async def _drive(request: UpgradeRequest) -> UpgradeStatus | None:
        while True:
            directive = await reconciler.reconcile(request)
            if isinstance(directive, AwaitExternalChange):
                return await eksup_ctx.store.get(request.request_id)
            await asyncio.sleep(max(directive.seconds, interval))

    async def _watch() -> list[UpgradeStatus | None]:
        console.print(f"[bold blue]Watching {len(requests)} upgrade request(s)[/bold blue]\n")
        return await asyncio.gather(*(_drive(r) for r in requests))

    statuses = asyncio.run(_watch())

    table = Table(title="Upgrade Results")
    table.add_column("Request", style="cyan")
    table.add_column("Cluster")
    table.add_column("Phase")
    table.add_column("Message")
    failed = False
    for request, status in zip(requests, statuses, strict=True):
        if status is None:
            table.add_row(request.request_id, request.cluster_name, "-", "no status")
            failed = True
            continue
        style = _phase_style(status)
        table.add_row(
            request.request_id,
            request.cluster_name,
            f"[{style}]{status.phase.value}[/{style}]",
            status.message or "",
        )
        failed = failed or status.phase == UpgradePhase.FAILED
    console.print(table)

    if failed:
        raise SystemExit(1)


@cli.command()
@click.argument("request_id")
@click.option("--reset", is_flag=True, help="Delete persisted status so the request starts over")
@click.pass_context
def status(ctx: click.Context, request_id: str, reset: bool) -> None:
    """Show the persisted status of an upgrade request."""
    import asyncio

    eksup_ctx: EksupContext = ctx.obj

    if reset:
        removed = asyncio.run(eksup_ctx.store.delete(request_id))
        if removed:
            console.print(f"[green]✓ Status for {request_id} deleted[/green]")
        else:
            console.print(f"[yellow]No status recorded for {request_id}[/yellow]")
        return

    upgrade_status = asyncio.run(eksup_ctx.store.get(request_id))
    if upgrade_status is None:
        console.print(f"[yellow]No status recorded for {request_id}[/yellow]")
        raise SystemExit(1)
    _print_status(request_id, upgrade_status)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate configuration and AWS connectivity."""
    import asyncio

    from eksup.core.exceptions import EksupError

    eksup_ctx: EksupContext = ctx.obj
    console.print("[bold magenta]eksup validate[/bold magenta]\n")

    console.print("[bold]1. Configuration[/bold]")
    try:
        config = eksup_ctx.config
        console.print("  [green]✓ Configuration valid[/green]\n")
    except EksupError as e:
        console.print(f"  [red]✗ Configuration invalid: {e}[/red]")
        raise SystemExit(1) from e

    console.print("[bold]2. Status Store[/bold]")
    try:
        _ = eksup_ctx.store
        console.print(f"  [green]✓ {config.store.backend} store ready[/green]\n")
    except EksupError as e:
        console.print(f"  [red]✗ Status store unavailable: {e}[/red]")
        raise SystemExit(1) from e

    console.print("[bold]3. AWS Identity[/bold]")

    async def _validate() -> None:
        cloud = await eksup_ctx.cloud_factory.create(config.aws.region)
        identity = await cloud.verify_identity()
        console.print(f"  [green]✓ {identity.arn} (account {identity.account_id})[/green]\n")

    try:
        asyncio.run(_validate())
    except EksupError as e:
        console.print(f"  [red]✗ AWS identity check failed: {e}[/red]")
        raise SystemExit(1) from e

    console.print("[bold green]✓ Validation complete![/bold green]")


if __name__ == "__main__":
    cli()
