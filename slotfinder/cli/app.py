"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.google_authenticator import GoogleAuthenticator
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..config import AppConfig
from ..domain import timeutil
from ..domain.exceptions import SlotFinderError
from ..domain.models import SlotRequest
from ..services.scheduling import BookingRequest, SchedulingService
from ..services.windows import resolve_window

app = typer.Typer(
    name="slotfinder",
    help="Find and book free meeting slots on a Google Calendar",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml if present"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use mock calendar data and skip authentication."),
]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    load_dotenv()
    return AppConfig.load(config_file)


def _build_calendar_client(config: AppConfig, mock: bool):
    """Pick the real Google client or the mock one."""
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using test data[/yellow]\n")
        return MockCalendarClient()

    authenticator = GoogleAuthenticator(
        client_email=config.google.client_email,
        private_key=config.google.private_key,
    )
    return GoogleCalendarClient(authenticator=authenticator, timeout=config.google.timeout_seconds)


def _build_service(config: AppConfig, client) -> SchedulingService:
    return SchedulingService(
        calendar_client=client,
        business_hours=config.build_business_hours(),
        lead_minutes=config.defaults.lead_minutes,
    )


@app.command()
def find(
    config_file: ConfigOption = None,
    calendar: Annotated[Optional[str], typer.Option("--calendar", help="Calendar id. Defaults to the configured calendar")] = None,
    tz: Annotated[Optional[str], typer.Option("--tz", help="IANA time zone for business hours")] = None,
    range_name: Annotated[Optional[str], typer.Option("--range", "-r", help="week, fortnight, month or custom")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Window start (ISO-8601 or epoch ms)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Window end (ISO-8601 or epoch ms)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Maximum number of slots")] = None,
    mock: MockOption = False,
):
    """
    Find free meeting slots.

    Examples:

        # Rest of the month with defaults
        slotfinder find

        # Next seven days, one hour meetings
        slotfinder find --range week --duration 60

        # Explicit window
        slotfinder find --start 2024-11-25T00:00:00Z --end 2024-11-29T23:59:59Z

        # Use mock data (for testing without Google credentials)
        slotfinder find --mock
    """
    try:
        config = _load_config(config_file)

        timezone = timeutil.ensure_timezone(tz or config.timezone)
        calendar_id = calendar or config.calendar_id or ("mock@example.com" if mock else None)
        min_duration = duration if duration is not None else config.defaults.duration_minutes
        max_slots = min(limit if limit is not None else config.defaults.limit, config.defaults.max_limit)

        window, effective_range = resolve_window(
            range_name,
            timezone,
            start=start,
            end=end,
            default_range=config.defaults.range,
        )
        request = SlotRequest(
            window=window,
            timezone=timezone,
            duration_minutes=min_duration,
            max_slots=max_slots,
        )

        console.print("[bold cyan]📊 Summary:[/bold cyan]")
        console.print(f"   Calendar: {calendar_id}")
        console.print(f"   Window: {window.start.in_timezone(timezone).format('YYYY-MM-DD HH:mm')} - "
                      f"{window.end.in_timezone(timezone).format('YYYY-MM-DD HH:mm')} ({effective_range})")
        console.print(f"   Duration: {min_duration} minutes")
        console.print(f"   Business hours: {config.business_hours.start.strftime('%H:%M')} - "
                      f"{config.business_hours.end.strftime('%H:%M')} {timezone}")
        console.print()

        client = _build_calendar_client(config, mock)
        service = _build_service(config, client)
        result = service.find_free_slots(request, calendar_id, range_name=effective_range)

        if not result.slots:
            console.print(
                "[yellow]⚠ No free slots found.[/yellow]\n"
                "Try a longer window or a shorter duration."
            )
            return

        table = Table(
            title=f"{len(result.slots)} free slot(s)",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("#", style="dim")
        table.add_column("Slot", style="bold green")
        table.add_column("Start (UTC)", style="dim")

        for idx, slot in enumerate(result.slots, 1):
            table.add_row(str(idx), slot.format_display(), timeutil.to_utc_iso(slot.start))

        console.print(table)
        console.print()

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (SlotFinderError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    start: Annotated[str, typer.Option("--start", help="Event start (ISO-8601 or epoch ms)")],
    end: Annotated[str, typer.Option("--end", help="Event end (ISO-8601 or epoch ms)")],
    config_file: ConfigOption = None,
    calendar: Annotated[Optional[str], typer.Option("--calendar", help="Calendar id")] = None,
    tz: Annotated[Optional[str], typer.Option("--tz", help="Event time zone")] = None,
    summary: Annotated[Optional[str], typer.Option("--summary", "-s", help="Event title")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Event description")] = None,
    attendees: Annotated[Optional[List[str]], typer.Option("--attendee", "-a", help="Attendee e-mail (repeatable)")] = None,
    mock: MockOption = False,
):
    """
    Book a slot as a calendar event.
    """
    try:
        config = _load_config(config_file)

        booking = BookingRequest(
            calendar_id=calendar or config.calendar_id or ("mock@example.com" if mock else ""),
            start=timeutil.parse_instant(start),
            end=timeutil.parse_instant(end),
            timezone=tz or config.timezone,
            summary=summary or config.defaults.summary,
            description=description if description is not None else config.defaults.description,
            attendees=BookingRequest.normalize_attendees(attendees),
        )

        client = _build_calendar_client(config, mock)
        event = _build_service(config, client).book_slot(booking)

        console.print(Panel.fit(
            f"[bold green]✓ Event created[/bold green]\n\n"
            f"[bold]Summary:[/bold] {event.get('summary', booking.summary)}\n"
            f"[bold]Start:[/bold] {booking.start.in_timezone(booking.timezone).format('dddd, YYYY-MM-DD HH:mm')}\n"
            f"[bold]Link:[/bold] {event.get('htmlLink', 'N/A')}",
            title="✓ Booking"
        ))

    except (SlotFinderError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def serve(
    config_file: ConfigOption = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port")] = None,
    mock: MockOption = False,
    log_level: Annotated[str, typer.Option("--log-level", help="Logging level")] = "info",
):
    """
    Run the HTTP API.
    """
    import uvicorn

    from ..api.server import create_app

    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)]
    )

    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    api = create_app(config, _build_calendar_client(config, mock))

    uvicorn.run(
        api,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=log_level.lower(),
    )


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    calendar: Annotated[Optional[str], typer.Option("--calendar", help="Calendar id to read")] = None,
):
    """
    Test Google Calendar authentication.
    """
    try:
        config = _load_config(config_file)
        calendar_id = calendar or config.calendar_id
        if not calendar_id:
            raise SlotFinderError("No calendar id given. Use --calendar or set DEFAULT_CALENDAR_ID.")

        console.print("\n[bold]Testing Google Calendar authentication...[/bold]\n")

        authenticator = GoogleAuthenticator(
            client_email=config.google.client_email,
            private_key=config.google.private_key,
        )
        authenticator.get_access_token(force_refresh=True)

        client = GoogleCalendarClient(authenticator=authenticator, timeout=config.google.timeout_seconds)
        calendar_info = client.test_connection(calendar_id)

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]Service account:[/bold] {config.google.client_email}\n"
            f"[bold]Calendar:[/bold] {calendar_info.get('summary', 'N/A')}\n"
            f"[bold]Time zone:[/bold] {calendar_info.get('timeZone', 'N/A')}",
            title="✓ Connection test"
        ))
        console.print()

    except (SlotFinderError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotfinder[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
