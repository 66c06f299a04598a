"""Typer CLI for Rollcall-Engine."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="rollcall", help="Rollcall-Engine: geofenced event attendance")
console = Console()


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host (defaults to ROLLCALL_HOST)"),
    port: int = typer.Option(None, help="Bind port (defaults to ROLLCALL_PORT)"),
):
    """Start the Rollcall-Engine API server."""
    import uvicorn
    from rollcall_engine.app import create_app
    from rollcall_engine.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting Rollcall-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command("qr-encode")
def qr_encode(
    event_id: str = typer.Argument(..., help="Lowercase alphanumeric event id"),
    issued_at: int = typer.Option(None, help="Issuance time in unix millis (defaults to now)"),
):
    """Print the QR payload for an event (offline, no DB required)."""
    from rollcall_engine.qr.codec import encode_payload

    try:
        payload = encode_payload(event_id, issued_at)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[bold]{payload}[/bold]")


@app.command("qr-decode")
def qr_decode(
    payload: str = typer.Argument(..., help="Scanned QR payload"),
):
    """Parse a QR payload offline (format check only)."""
    from rollcall_engine.qr.codec import decode_payload

    decoded = decode_payload(payload)
    if decoded is None:
        console.print("[bold red]INVALID_QR[/bold red] - expected attendance:{eventId}:{timestamp}")
        raise typer.Exit(1)
    console.print("[bold green]VALID[/bold green]")
    console.print(f"  Event:  {decoded.event_id}")
    console.print(f"  Issued: {decoded.issued_at_datetime.isoformat()}")


@app.command()
def distance(
    lat1: float = typer.Argument(..., help="Venue latitude"),
    lon1: float = typer.Argument(..., help="Venue longitude"),
    lat2: float = typer.Argument(..., help="Position latitude"),
    lon2: float = typer.Argument(..., help="Position longitude"),
    radius: float = typer.Option(None, help="Geofence radius in meters (defaults to ROLLCALL_GEOFENCE_RADIUS_M)"),
):
    """Haversine distance between two points and whether it falls inside the geofence."""
    from rollcall_engine.common.config import get_settings
    from rollcall_engine.geofence.validator import haversine_distance

    radius = radius or get_settings().geofence_radius_m
    meters = haversine_distance(lat1, lon1, lat2, lon2)
    inside = meters <= radius
    colour = "green" if inside else "red"
    console.print(
        f"[bold]{meters:.1f} m[/bold] - "
        f"[{colour}]{'inside' if inside else 'outside'}[/{colour}] {radius:.0f} m geofence"
    )


@app.command("verify-audit")
def verify_audit(
    show: int = typer.Option(0, help="Also print the latest N entries"),
):
    """Verify the security log hash chain against the configured database."""
    from rollcall_engine.deps import get_audit_service, get_db

    async def _run():
        db = get_db()
        await db.init()
        try:
            async with db.get_session() as session:
                svc = get_audit_service()
                result = await svc.verify_chain(session)
                entries = await svc.get_entries(session, limit=show) if show else []
            return result, entries
        finally:
            await db.close()

    result, entries = asyncio.run(_run())

    if entries:
        table = Table(title="Security log")
        table.add_column("Seq", justify="right")
        table.add_column("Action")
        table.add_column("Actor")
        table.add_column("Entity")
        for e in entries:
            table.add_row(str(e.sequence), e.action, e.actor_id or "-", f"{e.entity_type}:{e.entity_id}")
        console.print(table)

    if result["valid"]:
        console.print(f"[bold green]VALID[/bold green] - {result['entries_checked']} entries checked")
    else:
        console.print(f"[bold red]BROKEN[/bold red] at sequence {result['break_at']}")
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Rollcall-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] - v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
