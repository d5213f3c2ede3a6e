"""
Bar POS CLI.

Command-line interface for database setup, stock checks and broadcast diagnostics.
"""

import asyncio
import sys
import time

import httpx
import typer
from rich.console import Console
from rich.table import Table

from pos_shared.config.settings import settings

app = typer.Typer(
    name="barpos",
    help="Bar POS management CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create every table (no migrations)."""
    from pos_shared.infrastructure.db import engine
    from pos_api.models import Base

    console.print("[blue]Creating tables...[/blue]")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Tables created/verified[/green]")


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding production"),
):
    """Seed roles, permissions, the administrator, currencies and settings."""
    from pos_shared.infrastructure.db import get_db_context
    from pos_api.seed import seed

    if settings.environment == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    try:
        with get_db_context() as db:
            seed(db)
    except Exception as e:
        console.print(f"[red]✗ Seeding failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Seed complete (admin: {settings.seed_admin_email})[/green]")


# =============================================================================
# Stock Commands
# =============================================================================

@app.command()
def stock_report(
    low_only: bool = typer.Option(False, "--low", "-l", help="Only products at or below minimum"),
):
    """Show sellable stock per product, combos included."""
    from pos_shared.infrastructure.db import get_db_context
    from pos_api.services.domain import ComboAvailabilityResolver

    with get_db_context() as db:
        overview = ComboAvailabilityResolver(db).stock_overview()

    table = Table(title="Stock")
    table.add_column("Código", style="cyan")
    table.add_column("Producto")
    table.add_column("Tipo")
    table.add_column("Stock", justify="right", style="green")
    table.add_column("Mínimo", justify="right")

    shown = 0
    for row in overview:
        if low_only and not row["is_low"]:
            continue
        stock = f"[red]{row['stock']}[/red]" if row["is_low"] else str(row["stock"])
        table.add_row(
            row["code"],
            row["name"],
            "combo" if row["is_combo"] else "producto",
            stock,
            str(row["min_stock"]),
        )
        shown += 1

    if shown == 0:
        console.print("[green]✓ No products to report[/green]")
        return
    console.print(table)


# =============================================================================
# Broadcast Commands
# =============================================================================

@app.command()
def broadcast_test(
    message: str = typer.Option("Prueba de conexión", help="Message to publish"),
):
    """Publish a diagnostics message on the orders channel."""

    async def _publish() -> int:
        from pos_shared.infrastructure.events import (
            close_redis_pool,
            get_redis_pool,
            publish_test_event,
        )

        redis = await get_redis_pool()
        try:
            return await publish_test_event(redis, message=message)
        finally:
            await close_redis_pool()

    try:
        receivers = asyncio.run(_publish())
    except Exception as e:
        console.print(f"[red]✗ Publish failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(
        f"[green]✓ Published on '{settings.broadcast_channel}' to {receivers} subscriber(s)[/green]"
    )


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    host: str = typer.Option("localhost", help="Host running both servers"),
):
    """Check system health."""

    async def _health():
        services = [
            ("REST API", f"http://{host}:{settings.rest_api_port}/api/health"),
            ("WS Gateway", f"http://{host}:{settings.ws_gateway_port}/ws/health"),
        ]

        table = Table(title="Service Health")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Response Time", style="yellow")

        async with httpx.AsyncClient(timeout=5.0) as client:
            for name, url in services:
                try:
                    start = time.monotonic()
                    response = await client.get(url)
                    elapsed = (time.monotonic() - start) * 1000
                    if response.status_code == 200:
                        table.add_row(name, "✓ Healthy", f"{elapsed:.0f}ms")
                    else:
                        table.add_row(name, f"✗ Status {response.status_code}", f"{elapsed:.0f}ms")
                except httpx.HTTPError as e:
                    table.add_row(name, f"✗ {type(e).__name__}", "-")

        try:
            from pos_shared.infrastructure.events import close_redis_pool, get_redis_pool

            start = time.monotonic()
            redis = await get_redis_pool()
            await redis.ping()
            elapsed = (time.monotonic() - start) * 1000
            table.add_row("Redis", "✓ Healthy", f"{elapsed:.0f}ms")
            await close_redis_pool()
        except Exception as e:
            table.add_row("Redis", f"✗ {type(e).__name__}", "-")

        console.print(table)

    asyncio.run(_health())


@app.command()
def version():
    """Show version information."""
    from importlib.metadata import PackageNotFoundError, version as pkg_version

    try:
        installed = pkg_version("barpos")
    except PackageNotFoundError:
        installed = "dev"

    table = Table(title="Bar POS Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")
    table.add_row("barpos", installed)
    table.add_row("Python", sys.version.split()[0])
    console.print(table)


if __name__ == "__main__":
    app()
