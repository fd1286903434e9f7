"""Command-line interface for readingpace.

Built with Typer for commands and Rich for output.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Coroutine, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_config
from .db import get_db
from .db.models import Book
from .db.schemas import BookCreate, BookStatus, DateRange, SessionFilters
from .reading import LocalSessionStore, SessionError, SessionLifecycleController, SessionTimer
from .reading.formatting import (
    format_reading_pace,
    format_reading_time,
    format_session_date,
    get_session_state_info,
    get_session_summary,
    group_sessions_by_date,
)
from .stats import GoalStore, calculate_progress_forecast, get_progress_percentage

# Create the main app
app = typer.Typer(
    name="readingpace",
    help="Time your reading sessions and forecast when you'll finish.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()

SPARK_BLOCKS = "▁▂▃▄▅▆▇█"


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def _controller() -> SessionLifecycleController:
    config = get_config()
    store = LocalSessionStore(get_db())
    return SessionLifecycleController(store, request_timeout=config.request_timeout)


def _run(coro: Coroutine):
    """Run a coroutine, turning session errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except SessionError as e:
        print_error(str(e))
        raise typer.Exit(1)


def _find_book(query: str) -> Book:
    """Find a book by ID, or by title/author search with a prompt on ties."""
    db = get_db()
    book = db.get_book(query)
    if book:
        return book

    books = db.search_books(query, limit=5)
    if not books:
        print_error(f"No book found matching: {query}")
        raise typer.Exit(1)

    if len(books) == 1:
        return books[0]

    console.print("\n[bold]Multiple books found:[/bold]")
    for i, b in enumerate(books, 1):
        console.print(f"  {i}. {b.title} by {b.author}")

    choice = typer.prompt("Select book number", type=int, default=1)
    if choice < 1 or choice > len(books):
        print_error("Invalid selection")
        raise typer.Exit(1)
    return books[choice - 1]


def _sparkline(values: list[int]) -> str:
    peak = max(values, default=0)
    if peak <= 0:
        return SPARK_BLOCKS[0] * len(values)
    return "".join(SPARK_BLOCKS[round(v / peak * (len(SPARK_BLOCKS) - 1))] for v in values)


def format_book_table(books: list, title: str = "Books") -> Table:
    """Create a rich table for displaying books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Status", style="yellow")
    table.add_column("Pages", justify="right")
    table.add_column("Progress", justify="right")

    for book in books:
        pages = f"{book.current_page or 0}/{book.total_pages}" if book.total_pages else "-"
        table.add_row(
            book.title,
            book.author,
            book.status,
            pages,
            f"{get_progress_percentage(book)}%",
        )

    return table


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Time your reading sessions and forecast when you'll finish."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s"
        )


# ============================================================================
# Book Commands
# ============================================================================


@app.command()
def add(
    title: str = typer.Option(..., "--title", "-t", prompt="Book title"),
    author: str = typer.Option(..., "--author", "-a", prompt="Author"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", min=1, help="Total pages"),
    current_page: Optional[int] = typer.Option(
        None, "--current-page", "-c", min=0, help="Page you're on"
    ),
    status: BookStatus = typer.Option(BookStatus.TO_READ, "--status", "-s", help="Reading status"),
    daily_target: Optional[int] = typer.Option(
        None, "--daily-target", "-d", min=1, help="Pages per day to aim for"
    ),
) -> None:
    """Add a book to track."""
    try:
        book_data = BookCreate(
            title=title,
            author=author,
            status=status,
            total_pages=pages,
            current_page=current_page,
            daily_page_target=daily_target,
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    book = get_db().create_book(book_data)
    print_success(f"Added: {book.title} by {book.author}")
    print_info(f"ID: {book.id}")


@app.command()
def books(
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
) -> None:
    """List tracked books."""
    db = get_db()
    if status:
        found = db.get_books_by_status(status.value)
        title = f"Books - {status.value.replace('_', ' ').title()}"
    else:
        found = db.get_all_books()
        title = "All Books"

    if not found:
        console.print("[dim]No books found.[/dim]")
        return

    console.print(format_book_table(found, title=title))


# ============================================================================
# Session Commands
# ============================================================================


@app.command()
def start(
    query: str = typer.Argument(..., help="Book title or ID"),
    page: Optional[int] = typer.Option(None, "--page", "-p", min=0, help="Starting page"),
) -> None:
    """Start a timed reading session."""
    book = _find_book(query)

    async def _start():
        controller = _controller()
        await controller.refresh(book.id)
        return await controller.start(book.id, page)

    session = _run(_start())
    print_success(f"Started reading {book.title} at page {session.start_page}")


@app.command()
def pause(
    query: str = typer.Argument(..., help="Book title or ID"),
    reason: Optional[str] = typer.Option(None, "--reason", "-r", help="Why you're pausing"),
) -> None:
    """Pause the current session."""
    book = _find_book(query)

    async def _pause():
        controller = _controller()
        await controller.refresh(book.id)
        return await controller.pause(book.id, reason)

    session = _run(_pause())
    timer = SessionTimer.from_session(session)
    print_success(f"Paused {book.title} after {timer.formatted}")


@app.command()
def resume(
    query: str = typer.Argument(..., help="Book title or ID"),
) -> None:
    """Resume a paused session."""
    book = _find_book(query)

    async def _resume():
        controller = _controller()
        await controller.refresh(book.id)
        return await controller.resume(book.id)

    _run(_resume())
    print_success(f"Resumed {book.title}")


@app.command()
def stop(
    query: str = typer.Argument(..., help="Book title or ID"),
    end_page: int = typer.Option(..., "--page", "-p", min=0, prompt="Page you stopped on"),
    request_id: Optional[str] = typer.Option(
        None, "--request-id", help="Idempotency key; repeating it has no further effect"
    ),
) -> None:
    """Finish the current session."""
    book = _find_book(query)

    async def _stop():
        controller = _controller()
        await controller.refresh(book.id)
        return await controller.stop(book.id, end_page, request_id=request_id)

    session = _run(_stop())
    print_success(f"{book.title}: {get_session_summary(session)}")


@app.command("quick-add")
def quick_add(
    query: str = typer.Argument(..., help="Book title or ID"),
    pages_read: int = typer.Argument(..., min=0, help="Pages read"),
    from_page: Optional[int] = typer.Option(
        None, "--from", "-f", min=0, help="Page you started from"
    ),
    on: Optional[datetime] = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="Day you read (YYYY-MM-DD)"
    ),
    request_id: Optional[str] = typer.Option(
        None, "--request-id", help="Idempotency key; repeating it has no further effect"
    ),
) -> None:
    """Log pages read without timing a session."""
    book = _find_book(query)
    controller = _controller()
    session = _run(
        controller.quick_add(
            book.id,
            pages_read,
            page=from_page,
            request_id=request_id,
            session_date=on.date() if on else None,
        )
    )
    print_success(
        f"Logged pages {session.start_page}-{session.end_page} of {book.title}"
    )


@app.command()
def status(
    query: Optional[str] = typer.Argument(None, help="Book title or ID (default: all)"),
) -> None:
    """Show sessions in progress."""
    db = get_db()
    candidates = [_find_book(query)] if query else db.get_all_books()

    table = Table(title="Sessions in Progress", show_header=True, header_style="bold magenta")
    table.add_column("Book", style="cyan", max_width=40)
    table.add_column("State")
    table.add_column("Started", justify="right")
    table.add_column("From page", justify="right")
    table.add_column("Elapsed", justify="right")

    store = LocalSessionStore(db)

    async def _open_sessions():
        return [(book, await store.get_active_session(book.id)) for book in candidates]

    open_sessions = [(b, s) for b, s in _run(_open_sessions()) if s is not None]
    for book, session in open_sessions:
        timer = SessionTimer.from_session(session)
        state = get_session_state_info(session)
        table.add_row(
            book.title,
            f"[{state.color}]{state.text}[/{state.color}]",
            session.started_at.strftime("%H:%M"),
            str(session.start_page),
            timer.formatted,
        )

    if not open_sessions:
        console.print("[dim]No reading sessions in progress.[/dim]")
        return

    console.print(table)


@app.command()
def history(
    query: Optional[str] = typer.Argument(None, help="Book title or ID (default: all)"),
    days: int = typer.Option(7, "--days", "-d", min=1, help="Days to show"),
    limit: int = typer.Option(0, "--limit", "-l", min=0, help="Max sessions (0 = all)"),
) -> None:
    """Show completed sessions grouped by day."""
    db = get_db()
    book = _find_book(query) if query else None
    store = LocalSessionStore(db)

    filters = SessionFilters(
        date_range=DateRange.last_days(days, store.today()),
        limit=limit,
    )
    sessions = _run(store.list_sessions(book.id if book else None, filters))
    sessions = [s for s in sessions if not s.is_open]

    if not sessions:
        console.print("[dim]No reading sessions found.[/dim]")
        return

    titles = {b.id: b.title for b in db.get_all_books()}
    for group in group_sessions_by_date(sessions):
        heading = format_session_date(group.date, store.today())
        console.print(
            f"\n[bold]{heading}[/bold] "
            f"[dim]{group.total_pages} pages, {format_reading_time(group.total_minutes)}[/dim]"
        )
        for session in group.sessions:
            title = titles.get(str(session.book_id), "Unknown book")
            console.print(f"  [cyan]{title}[/cyan]: {get_session_summary(session)}")


# ============================================================================
# Analytics Commands
# ============================================================================


@app.command()
def forecast(
    query: str = typer.Argument(..., help="Book title or ID"),
) -> None:
    """Forecast when you'll finish a book."""
    book = _find_book(query)
    store = LocalSessionStore(get_db())
    book_snapshot = _run(store.get_book(book.id))
    sessions = _run(store.list_sessions(book.id))

    result = calculate_progress_forecast(
        book_snapshot,
        sessions,
        today=store.today(),
        default_daily_target=get_config().daily_page_target,
    )

    lines = [
        f"Progress: {get_progress_percentage(book_snapshot)}%",
        f"Pace: {format_reading_pace(result.average_pages_per_hour)}",
        f"Daily target: {result.daily_page_target} pages",
    ]
    if result.estimated_time_to_finish:
        lines.append(f"Time left: {result.estimated_time_to_finish}")
        lines.append(f"Finish by: {result.estimated_finish_date.isoformat()}")
    else:
        lines.append("[dim]Not enough data to estimate a finish date yet.[/dim]")

    console.print(Panel("\n".join(lines), title=f"[bold]{book.title}[/bold]"))


@app.command()
def stats(
    days: Optional[int] = typer.Option(None, "--days", "-d", min=1, help="Days to cover"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show reading statistics."""
    store = LocalSessionStore(get_db())
    date_range = DateRange.last_days(days, store.today()) if days else None
    overview = _run(store.get_stats_overview(date_range))

    if as_json:
        console.print_json(json.dumps(overview.to_dict()))
        return

    totals = overview.totals
    summary = [
        f"[bold]{overview.range.start.isoformat()} to {overview.range.end.isoformat()}[/bold]",
        f"Pages: {totals.pages} ({totals.pages_per_day(overview.days)}/day)",
        f"Time: {format_reading_time(totals.minutes)} across {totals.sessions} sessions",
        f"Streak: {overview.streak.current} days (best {overview.streak.best})",
        f"Trend: {overview.trend.percent_change:+.1f}% pages/day vs previous week",
        f"Pages: {_sparkline([pages for _, pages in overview.sparkline])}",
    ]
    console.print(Panel("\n".join(summary), title="[bold]Reading Stats[/bold]"))

    goals = overview.goals
    console.print(
        f"Goals: {goals.pages.display_percent}% of {goals.target_pages} pages, "
        f"{goals.minutes.display_percent}% of {format_reading_time(goals.target_minutes)}"
    )

    if overview.active_etas:
        table = Table(title="Currently Reading", show_header=True, header_style="bold magenta")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Progress", justify="right")
        table.add_column("Pages/day", justify="right")
        table.add_column("Finish by", justify="right")
        for eta in overview.active_etas:
            table.add_row(
                eta.title,
                f"{eta.progress_pct}%",
                str(eta.bite_pages),
                eta.eta_date.isoformat() if eta.eta_date else "-",
            )
        console.print(table)

    if overview.finished_books:
        table = Table(title="Finished", show_header=True, header_style="bold magenta")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Days", justify="right")
        table.add_column("Pages/hr", justify="right")
        for finished in overview.finished_books:
            table.add_row(finished.title, str(finished.days_to_finish), str(finished.avg_pph))
        console.print(table)


@app.command()
def goals(
    target_pages: Optional[int] = typer.Option(None, "--pages", min=0, help="Pages target"),
    target_minutes: Optional[int] = typer.Option(None, "--minutes", min=0, help="Minutes target"),
    bite: Optional[int] = typer.Option(None, "--bite", min=1, help="Pages per day"),
) -> None:
    """Show or change reading goals."""
    store = GoalStore()
    if target_pages is None and target_minutes is None and bite is None:
        current = store.load()
    else:
        current = store.update(target_pages, target_minutes, bite)
        print_success("Goals updated")

    console.print(f"Pages: {current.target_pages}")
    console.print(f"Minutes: {current.target_minutes}")
    console.print(f"Daily bite: {current.bite_target_per_day} pages")


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"readingpace version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
