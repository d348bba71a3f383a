"""
Command line interface for the bus terminal core.

Renders the return values of the core services as rich tables. Usage:

    busterminal init-db
    busterminal flights --date 2024-06-01
    busterminal sales --start 2024-06-01 --end 2024-06-30
"""

from datetime import date, datetime
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .container import TerminalServices, build_services
from .exceptions import PersistenceError
from .utils.config import configure_logging, load_config

app = typer.Typer(help="Bus terminal core: stops, routes, flights, tickets and reports")
console = Console()


def _services(env_file: Optional[str]) -> TerminalServices:
    try:
        config = load_config(env_file)
    except ValueError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(1)
    configure_logging(config.log_level)
    return build_services(config)


def _parse_date(value: str, option: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Error: Invalid {option} '{value}'. Use YYYY-MM-DD[/red]")
        raise typer.Exit(1)


def _fail(e: PersistenceError) -> None:
    console.print(f"[red]❌ Storage error: {escape(str(e))}[/red]")
    raise typer.Exit(1)


EnvFileOption = typer.Option(None, "--env-file", "-e", help="Path to a .env file")


@app.command("init-db")
def init_db(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables first"),
    env_file: Optional[str] = EnvFileOption,
):
    """Create the database tables."""
    services = _services(env_file)
    try:
        if drop:
            services.db.drop_tables()
            console.print("[yellow]🧹 Existing tables dropped[/yellow]")
        services.db.create_tables()
    finally:
        services.close()

    info = services.db.get_connection_info()
    console.print(f"[green]✓[/green] Tables ready on {info['database_type']} ({info['database_url']})")


@app.command()
def stops(env_file: Optional[str] = EnvFileOption):
    """List all stops."""
    services = _services(env_file)
    try:
        rows = services.stops.get_all_stops()
    except PersistenceError as e:
        _fail(e)
    finally:
        services.close()

    table = Table(title="Stops", box=box.ROUNDED)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("City", style="white")
    table.add_column("Name", style="green")
    for stop in rows:
        table.add_row(str(stop.id), stop.city, stop.name)
    console.print(table)


@app.command()
def routes(env_file: Optional[str] = EnvFileOption):
    """List all routes with their stops in traversal order."""
    services = _services(env_file)
    try:
        rows = services.routes.get_all_routes()
    except PersistenceError as e:
        _fail(e)
    finally:
        services.close()

    table = Table(title="Routes", box=box.ROUNDED)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Route", style="white")
    table.add_column("Stops", style="magenta", justify="right")
    for route in rows:
        table.add_row(str(route.id), route.full_description, str(len(route.stops)))
    console.print(table)


@app.command()
def flights(
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="Departure date (YYYY-MM-DD); all flights if omitted"),
    env_file: Optional[str] = EnvFileOption,
):
    """List flights with derived seat occupancy."""
    day = _parse_date(date_str, "date") if date_str else None
    services = _services(env_file)
    try:
        rows = services.flights.get_flights_by_date(day) if day else services.flights.get_all_flights()
        occupancy = {flight.id: services.flights.get_occupied_seats_count(flight.id) for flight in rows}
    except PersistenceError as e:
        _fail(e)
    finally:
        services.close()

    table = Table(title=f"Flights on {day}" if day else "Flights", box=box.ROUNDED)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Route", style="white")
    table.add_column("Departure", style="green")
    table.add_column("Arrival", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Seats", style="magenta", justify="right")
    table.add_column("Price", style="magenta", justify="right")
    for flight in rows:
        table.add_row(
            str(flight.id),
            flight.route.full_description,
            flight.departure_date_time.strftime("%Y-%m-%d %H:%M"),
            flight.arrival_date_time.strftime("%Y-%m-%d %H:%M"),
            flight.status.value,
            f"{occupancy[flight.id]}/{flight.total_seats}",
            f"{flight.price_per_seat:.2f}",
        )
    console.print(table)


@app.command()
def sales(
    start: str = typer.Option(..., "--start", "-s", help="First purchase day (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Last purchase day (YYYY-MM-DD)"),
    env_file: Optional[str] = EnvFileOption,
):
    """Sold tickets per route over a purchase period."""
    start_day = _parse_date(start, "start")
    end_day = _parse_date(end, "end")
    if start_day > end_day:
        console.print("[red]Error: --start must not be after --end[/red]")
        raise typer.Exit(1)

    services = _services(env_file)
    try:
        entries = services.reports.sales_by_route_for_period(start_day, end_day)
    except PersistenceError as e:
        _fail(e)
    finally:
        services.close()

    table = Table(title=f"Sales {start_day} .. {end_day}", box=box.ROUNDED)
    table.add_column("Route ID", style="cyan", justify="right")
    table.add_column("Route", style="white")
    table.add_column("Tickets", style="magenta", justify="right")
    table.add_column("Total", style="green", justify="right")
    for entry in entries:
        table.add_row(str(entry.route_id), entry.route_description, str(entry.ticket_count), f"{entry.total_sales:.2f}")
    console.print(table)

    total = sum(entry.total_sales for entry in entries)
    tickets = sum(entry.ticket_count for entry in entries)
    console.print(f"[bold]Total:[/bold] {total:.2f} over {tickets} tickets")


@app.command("ticket-status")
def ticket_status(env_file: Optional[str] = EnvFileOption):
    """Ticket counts for every status."""
    services = _services(env_file)
    try:
        counts = services.reports.ticket_counts_by_status()
    except PersistenceError as e:
        _fail(e)
    finally:
        services.close()

    table = Table(title="Tickets by status", box=box.ROUNDED)
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for status, count in counts.items():
        table.add_row(status.value, str(count))
    console.print(table)


@app.command("flight-load")
def flight_load(
    date_str: str = typer.Option(..., "--date", "-d", help="Departure date (YYYY-MM-DD)"),
    env_file: Optional[str] = EnvFileOption,
):
    """Seat load of every flight departing on a day."""
    day = _parse_date(date_str, "date")
    services = _services(env_file)
    try:
        entries = services.reports.flight_load_report(day)
    except PersistenceError as e:
        _fail(e)
    finally:
        services.close()

    table = Table(title=f"Flight load on {day}", box=box.ROUNDED)
    table.add_column("Flight", style="cyan", justify="right")
    table.add_column("Route", style="white")
    table.add_column("Departure", style="green")
    table.add_column("Occupied", style="magenta", justify="right")
    table.add_column("Load %", style="yellow", justify="right")
    for entry in entries:
        table.add_row(
            str(entry.flight_id),
            entry.route_description,
            entry.departure_date_time.strftime("%H:%M"),
            f"{entry.occupied_seats}/{entry.total_seats}",
            f"{entry.load_percentage:.2f}",
        )
    console.print(table)


if __name__ == "__main__":
    app()
