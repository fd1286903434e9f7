"""Tests for the CLI interface."""

import pytest
from typer.testing import CliRunner

from src.readingpace.db.models import Book
from src.readingpace.db.sqlite import Database


@pytest.fixture
def runner(db: Database) -> CliRunner:
    """Create a CLI test runner against the test database."""
    return CliRunner()


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["--help"])
        assert result.exit_code == 0
        assert "Time your reading" in result.stdout

    def test_version(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_verbose_flag(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["--verbose", "version"])
        assert result.exit_code == 0


class TestBookCommands:
    """Tests for add and books commands."""

    def test_add_book(self, runner: CliRunner, cli_app, db: Database):
        result = runner.invoke(
            cli_app, ["add", "--title", "Test Book", "--author", "Test Author", "--pages", "120"]
        )

        assert result.exit_code == 0
        assert "Added:" in result.stdout
        books = db.search_books("Test Book")
        assert books[0].total_pages == 120

    def test_add_book_invalid_pages(self, runner: CliRunner, cli_app):
        result = runner.invoke(
            cli_app,
            ["add", "--title", "Bad", "--author", "A", "--pages", "10", "--current-page", "20"],
        )
        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_books_list(self, runner: CliRunner, cli_app, multiple_books: list[Book]):
        result = runner.invoke(cli_app, ["books"])
        assert result.exit_code == 0
        assert "Book Two" in result.stdout

    def test_books_filtered(self, runner: CliRunner, cli_app, multiple_books: list[Book]):
        result = runner.invoke(cli_app, ["books", "--status", "to_read"])
        assert result.exit_code == 0
        assert "Book Three" in result.stdout
        assert "Book Two" not in result.stdout

    def test_books_empty(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["books"])
        assert "No books found" in result.stdout


class TestSessionCommands:
    """Tests for the session lifecycle commands."""

    def test_full_session(self, runner: CliRunner, cli_app, created_book: Book, db: Database):
        result = runner.invoke(cli_app, ["start", created_book.id])
        assert result.exit_code == 0
        assert "Started reading" in result.stdout
        assert "page 10" in result.stdout

        result = runner.invoke(cli_app, ["status"])
        assert result.exit_code == 0
        assert "Active" in result.stdout

        result = runner.invoke(cli_app, ["pause", created_book.id, "--reason", "dinner"])
        assert result.exit_code == 0
        assert "Paused" in result.stdout

        result = runner.invoke(cli_app, ["resume", created_book.id])
        assert result.exit_code == 0
        assert "Resumed" in result.stdout

        result = runner.invoke(cli_app, ["stop", created_book.id, "--page", "40"])
        assert result.exit_code == 0
        assert "30 pages" in result.stdout

        assert db.get_book(created_book.id).current_page == 40
        assert db.get_open_session(created_book.id) is None

    def test_start_by_title(self, runner: CliRunner, cli_app, created_book: Book):
        result = runner.invoke(cli_app, ["start", "Left Hand", "--page", "12"])
        assert result.exit_code == 0
        assert "page 12" in result.stdout

    def test_double_start(self, runner: CliRunner, cli_app, created_book: Book):
        runner.invoke(cli_app, ["start", created_book.id])
        result = runner.invoke(cli_app, ["start", created_book.id])

        assert result.exit_code == 1
        assert "already" in result.stdout

    def test_pause_without_session(self, runner: CliRunner, cli_app, created_book: Book):
        result = runner.invoke(cli_app, ["pause", created_book.id])
        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_stop_before_start_page(self, runner: CliRunner, cli_app, created_book: Book):
        runner.invoke(cli_app, ["start", created_book.id])
        result = runner.invoke(cli_app, ["stop", created_book.id, "--page", "5"])
        assert result.exit_code == 1
        assert "less than start page" in result.stdout

    def test_unknown_book(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["start", "no such book"])
        assert result.exit_code == 1
        assert "No book found" in result.stdout

    def test_status_without_sessions(self, runner: CliRunner, cli_app, created_book: Book):
        result = runner.invoke(cli_app, ["status"])
        assert result.exit_code == 0
        assert "No reading sessions in progress" in result.stdout

    def test_quick_add(self, runner: CliRunner, cli_app, created_book: Book, db: Database):
        result = runner.invoke(cli_app, ["quick-add", created_book.id, "15"])

        assert result.exit_code == 0
        assert "Logged pages 10-25" in result.stdout
        assert db.get_book(created_book.id).current_page == 25

    def test_quick_add_with_date(self, runner: CliRunner, cli_app, created_book: Book):
        result = runner.invoke(
            cli_app, ["quick-add", created_book.id, "5", "--date", "2026-01-15"]
        )
        assert result.exit_code == 0

        result = runner.invoke(cli_app, ["history", "--days", "3650"])
        assert "Jan 15, 2026" in result.stdout


class TestAnalyticsCommands:
    """Tests for history, forecast, stats and goals."""

    def test_history(self, runner: CliRunner, cli_app, created_book: Book):
        runner.invoke(cli_app, ["quick-add", created_book.id, "8"])

        result = runner.invoke(cli_app, ["history"])

        assert result.exit_code == 0
        assert "Today" in result.stdout
        assert "8 pages" in result.stdout

    def test_history_empty(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["history"])
        assert "No reading sessions found" in result.stdout

    def test_forecast_without_history(self, runner: CliRunner, cli_app, created_book: Book):
        result = runner.invoke(cli_app, ["forecast", created_book.id])

        assert result.exit_code == 0
        assert "Progress: 3%" in result.stdout
        assert "Not enough data" in result.stdout

    def test_stats(self, runner: CliRunner, cli_app, created_book: Book):
        runner.invoke(cli_app, ["quick-add", created_book.id, "20"])

        result = runner.invoke(cli_app, ["stats", "--days", "7"])

        assert result.exit_code == 0
        assert "Reading Stats" in result.stdout
        assert "Streak: 1 days" in result.stdout

    def test_stats_json(self, runner: CliRunner, cli_app, created_book: Book):
        result = runner.invoke(cli_app, ["stats", "--json"])
        assert result.exit_code == 0
        assert '"totals"' in result.stdout
        assert '"sparkline"' in result.stdout

    def test_goals(self, runner: CliRunner, cli_app):
        result = runner.invoke(cli_app, ["goals", "--pages", "500", "--bite", "20"])
        assert result.exit_code == 0
        assert "Goals updated" in result.stdout

        result = runner.invoke(cli_app, ["goals"])
        assert "Pages: 500" in result.stdout
        assert "Daily bite: 20 pages" in result.stdout
