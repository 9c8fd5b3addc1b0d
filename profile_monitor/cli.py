"""
Command-line interface for profile-monitor.

Provides commands to run the monitor, initialize the database, manage
tracked identities and run one-off checks. ``add``, ``remove`` and
``check`` are forwarded to the running monitor when its API answers.

Usage:
    profile-monitor run                      # Run poll loops + health API
    profile-monitor init-db                  # Create tables
    profile-monitor health                   # Check dependencies
    profile-monitor add alpha --target 42    # Track an identity
    profile-monitor remove alpha --target 42
    profile-monitor list --target 42
    profile-monitor stats alpha
    profile-monitor check alpha --loop profile
"""

import asyncio
import signal
import sys

import click
import httpx

from profile_monitor.config.settings import get_settings
from profile_monitor.observability.logging import setup_logging
from profile_monitor.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Profile Monitor - change detection and notifications for tracked profiles."""
    setup_logging("DEBUG" if debug else None)


def _run_with_engine(func):
    """Connect the database, build the engine, run ``func(engine)``, clean up."""
    from profile_monitor.monitor.engine import build_engine
    from profile_monitor.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            return await func(build_engine(db))
        finally:
            await db.close()

    return asyncio.run(run())


def _forward(method: str, path: str, **kwargs) -> dict | None:
    """
    Send a request to a running monitor process.

    Commands that touch the provider or the tracked set go through the
    monitor when one answers, so they share its rate limiter, grace window
    and write locks. Returns None when no monitor is reachable; the caller
    then works against the database directly.
    """
    base_url = get_settings().monitor_api_url.rstrip("/")
    try:
        httpx.get(f"{base_url}/health", timeout=2.0)
    except httpx.TransportError:
        return None

    response = httpx.request(method, f"{base_url}{path}", timeout=120.0, **kwargs)
    if response.status_code == 422:
        raise click.BadParameter(_error_detail(response), param_hint="IDENTITY")
    if response.is_error:
        raise click.ClickException(
            f"Monitor answered {response.status_code}: {_error_detail(response)}"
        )
    return response.json()


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        return response.text
    return detail if isinstance(detail, str) else str(detail)


@main.command()
@click.option("--host", default=None, help="Health API host")
@click.option("--port", default=None, type=int, help="Health API port")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def run(host: str | None, port: int | None, metrics: bool) -> None:
    """Run the poll loops and the health API until interrupted."""
    import uvicorn

    from profile_monitor.api.app import create_app

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    async def serve(engine) -> None:
        if metrics:
            get_metrics().start_server()

        server = uvicorn.Server(
            uvicorn.Config(
                create_app(
                    engine.scheduler,
                    engine.database,
                    tracking=engine.tracking,
                    checker=engine.checker,
                ),
                host=host,
                port=port,
                log_level="warning",
            )
        )
        # Shutdown signals stop the scheduler first, then the API
        server.install_signal_handlers = lambda: None

        stop_requested = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_requested.set)

        await engine.scheduler.start()
        api_task = asyncio.create_task(server.serve(), name="health_api")
        click.echo(f"Monitor running, health API on http://{host}:{port}/health")

        stop_task = asyncio.create_task(stop_requested.wait())
        await asyncio.wait({stop_task, api_task}, return_when=asyncio.FIRST_COMPLETED)
        stop_task.cancel()

        await engine.scheduler.stop()
        server.should_exit = True
        await api_task

    _run_with_engine(serve)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""

    async def run(engine) -> None:
        await engine.create_tables()
        click.echo("Database initialized successfully")

    _run_with_engine(run)


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog

    from profile_monitor.storage.database import Database

    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        results["telegram_configured"] = get_settings().telegram_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        click.echo(click.style("Some services unhealthy!", fg="red"))
        sys.exit(1)

    asyncio.run(check())


@main.command()
@click.argument("identity")
@click.option("--target", required=True, help="Destination id to notify")
@click.option("--no-check", is_flag=True, help="Skip the immediate checks")
def add(identity: str, target: str, no_check: bool) -> None:
    """Track IDENTITY for TARGET."""
    from profile_monitor.tracking.schemas import AddResult, InvalidIdentityError

    def report(result: AddResult) -> None:
        if result.created:
            click.echo(f"Now tracking @{result.identity} for {target}")
        else:
            click.echo(f"@{result.identity} is already tracked for {target}")

    body = _forward(
        "POST",
        "/identities",
        json={
            "identity": identity,
            "target": target,
            "created_by": "cli",
            "run_checks": not no_check,
        },
    )
    if body is not None:
        report(AddResult(**body))
        return

    async def run(engine) -> None:
        try:
            result = await engine.tracking.add(
                identity, target, created_by="cli", run_checks=not no_check,
            )
        except InvalidIdentityError as e:
            raise click.BadParameter(str(e), param_hint="IDENTITY") from e
        report(result)

    _run_with_engine(run)


@main.command()
@click.argument("identity")
@click.option("--target", required=True, help="Destination id")
def remove(identity: str, target: str) -> None:
    """Stop tracking IDENTITY for TARGET."""
    from profile_monitor.tracking.schemas import InvalidIdentityError, RemoveResult

    def report(result: RemoveResult) -> None:
        if not result.removed:
            click.echo(f"@{result.identity} was not tracked for {target}")
            return
        click.echo(f"Stopped tracking @{result.identity} for {target}")
        if result.history_deleted:
            click.echo("No subscribers left, history deleted")

    body = _forward("DELETE", f"/identities/{identity}", params={"target": target})
    if body is not None:
        report(RemoveResult(**body))
        return

    async def run(engine) -> None:
        try:
            result = await engine.tracking.remove(identity, target)
        except InvalidIdentityError as e:
            raise click.BadParameter(str(e), param_hint="IDENTITY") from e
        report(result)

    _run_with_engine(run)


@main.command("list")
@click.option("--target", required=True, help="Destination id")
def list_identities(target: str) -> None:
    """List identities tracked for TARGET."""

    async def run(engine) -> None:
        subs = await engine.tracking.list_identities(target)
        if not subs:
            click.echo("Nothing tracked")
            return
        for sub in subs:
            click.echo(f"@{sub.identity}  (since {sub.created_at:%Y-%m-%d})")

    _run_with_engine(run)


@main.command()
@click.argument("identity")
@click.option("--limit", default=10, help="Snapshots to compare")
def stats(identity: str, limit: int) -> None:
    """Show the latest stats of IDENTITY."""

    async def run(engine) -> None:
        result = await engine.tracking.stats(identity, limit=limit)
        click.echo(result.format())

    _run_with_engine(run)


@main.command()
@click.argument("identity")
@click.option(
    "--loop",
    "loop_name",
    type=click.Choice(["profile", "stories", "posts"]),
    default="profile",
    help="Which check to run",
)
def check(identity: str, loop_name: str) -> None:
    """Run one check for IDENTITY now."""
    from profile_monitor.tracking.schemas import InvalidIdentityError, normalize_identity

    body = _forward("POST", f"/identities/{identity}/check", params={"loop": loop_name})
    if body is not None:
        click.echo(f"{loop_name} check for @{body['identity']}: {body['outcome']}")
        return

    try:
        name = normalize_identity(identity)
    except InvalidIdentityError as e:
        raise click.BadParameter(str(e), param_hint="IDENTITY") from e

    async def run(engine) -> None:
        checker = engine.checker
        if loop_name == "profile":
            outcome = await checker.check_profile(name)
        elif loop_name == "stories":
            outcome = await checker.check_stories(name)
        else:
            outcome = await checker.check_feed(name)
        click.echo(f"{loop_name} check for @{name}: {outcome}")

    _run_with_engine(run)


if __name__ == "__main__":
    main()
