"""CLI entry point — novelhub admin and operator commands.

Usage:
  novelhub init-db                 create the database and seed genres
  novelhub add-novel -t ... -a ... add a novel
  novelhub list                    list novels
  novelhub related -n 1            related novels for a novel
  novelhub clear-cache             flush novel caches
  novelhub stats                   content and engagement totals
  novelhub health                  health check with recent log errors
  novelhub --help                  all commands
"""

import json
import logging
import sys

import click
from rich.table import Table

from cli.theme import (
    app_header,
    command_panel,
    get_console,
    novel_summary_panel,
    novel_table,
    related_table,
    success_panel,
)
from config.exceptions import NovelHubError
from config.logging_config import setup_logging
from config.settings import Settings
from models.seed import DEFAULT_GENRES
from services.app import App, create_app

console = get_console()


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = Settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _app() -> App:
    return create_app(Settings())


def _fail(message: str):
    console.print(f"[error]{message}[/]")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """novelhub — web novel platform administration.

    \b
    Examples:
      novelhub init-db
      novelhub add-novel -t "Sky Realm" -a "A. Writer" -g fantasy -g adventure
      novelhub related -n 1
    """
    _init_logging(verbose)


# ---------------------------------------------------------------------------
# setup commands
# ---------------------------------------------------------------------------

@cli.command(name="init-db")
def init_db():
    """Create the database schema and seed the default genres."""
    app = _app()
    added = app.db.seed_genres(DEFAULT_GENRES)
    app.cache.flush(["genres"], ["genres_all"])
    console.print(success_panel(
        "Database ready",
        f"  [stat.label]Path:[/] {app.settings.sqlite_db_path}\n"
        f"  [stat.label]Genres added:[/] [stat.value]{added}[/]",
    ))


@cli.command(name="seed-genres")
def seed_genres():
    """Insert any missing default genres."""
    app = _app()
    added = app.db.seed_genres(DEFAULT_GENRES)
    app.cache.flush(["genres"], ["genres_all"])
    console.print(f"[success]{added} genres added[/] [muted]({len(DEFAULT_GENRES)} defaults)[/]")


# ---------------------------------------------------------------------------
# novel commands
# ---------------------------------------------------------------------------

@cli.command(name="add-novel")
@click.option("--title", "-t", required=True, help="Novel title")
@click.option("--author", "-a", required=True, help="Author name")
@click.option("--description", "-d", default="", help="Short description")
@click.option("--status", "-s", default="ongoing",
              type=click.Choice(["ongoing", "completed", "hiatus"]), help="Lifecycle status")
@click.option("--genre", "-g", "genres", multiple=True, help="Genre slug (repeatable)")
def add_novel(title, author, description, status, genres):
    """Add a novel.

    Example:
      novelhub add-novel -t "Sky Realm" -a "A. Writer" -g fantasy
    """
    app = _app()
    genre_ids = []
    for slug in genres:
        genre = app.db.get_genre_by_slug(slug)
        if genre is None:
            _fail(f"Unknown genre: {slug}")
        genre_ids.append(genre.id)

    console.print(command_panel("New novel", {
        "Title": title,
        "Author": author,
        "Status": status,
        "Genres": ", ".join(genres) or "-",
    }))
    try:
        novel = app.novels.create_novel(
            title=title, author=author, description=description,
            status=status, genre_ids=genre_ids,
        )
    except NovelHubError as e:
        _fail(str(e))
    console.print(f"[success]Created novel {novel.id}[/] [muted]({novel.slug})[/]")


@cli.command(name="list")
@click.option("--genre", "-g", default=None, help="Filter by genre slug")
@click.option("--status", "-s", default=None, help="Filter by status")
@click.option("--sort", "sort_by", default="updated",
              type=click.Choice(["popular", "rating", "latest", "updated"]), help="Sort order")
@click.option("--page", "-p", default=1, type=int, help="Page number")
def list_novels(genre, status, sort_by, page):
    """List novels, 12 per page."""
    app = _app()
    try:
        result = app.novels.list_novels(genre=genre, status=status, sort_by=sort_by, page=page)
    except NovelHubError as e:
        _fail(str(e))

    console.print(app_header())
    if not result.items:
        console.print("[warning]No novels found. Use [info]novelhub add-novel[/] to add one.[/]")
        return
    console.print(novel_table(result.items, title=f"Novels (page {result.page}/{result.last_page})"))
    console.print(f"[muted]{result.total} novels in total[/]")


@cli.command()
@click.argument("slug")
def show(slug):
    """Show a novel and its chapters (counts a view)."""
    app = _app()
    try:
        novel = app.novels.show_novel(slug)
        chapters = app.chapters.list_chapters(novel.id)
    except NovelHubError as e:
        _fail(str(e))

    console.print(novel_summary_panel(novel))
    if chapters:
        table = Table(title="Chapters", border_style="dim")
        table.add_column("No.", style="chapter.num")
        table.add_column("Title")
        table.add_column("Words", justify="right")
        table.add_column("Free")
        for ch in chapters:
            table.add_row(
                str(ch.chapter_number), ch.title or "-", f"{ch.word_count:,}",
                "yes" if ch.is_free else "no",
            )
        console.print(table)


@cli.command()
@click.argument("query")
def search(query):
    """Search titles, authors and descriptions."""
    app = _app()
    try:
        novels = app.novels.search(query)
    except NovelHubError as e:
        _fail(str(e))
    if not novels:
        console.print(f"[warning]No results for {query!r}[/]")
        return
    console.print(novel_table(novels, title=f"Search: {query}"))


@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Reference novel ID")
def related(novel_id):
    """Show novels related to a novel."""
    app = _app()
    try:
        result = app.novels.related(novel_id)
    except NovelHubError as e:
        _fail(str(e))
    if not result.items:
        console.print("[warning]No related novels[/]")
        return
    console.print(related_table(result))


# ---------------------------------------------------------------------------
# chapter and rating commands
# ---------------------------------------------------------------------------

@cli.command(name="add-chapter")
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--title", "-t", required=True, help="Chapter title")
@click.option("--file", "-f", "content_file", type=click.File("r", encoding="utf-8"),
              required=True, help="Chapter text file ('-' for stdin)")
@click.option("--number", "-c", default=None, type=int, help="Chapter number (default: next)")
@click.option("--paid", is_flag=True, help="Mark the chapter as not free")
def add_chapter(novel_id, title, content_file, number, paid):
    """Add a chapter to a novel."""
    app = _app()
    try:
        chapter = app.chapters.create_chapter(
            novel_id, title=title, content=content_file.read(),
            chapter_number=number, is_free=not paid,
        )
    except NovelHubError as e:
        _fail(str(e))
    console.print(
        f"[success]Chapter {chapter.chapter_number} added[/] "
        f"[muted]({chapter.word_count:,} words)[/]"
    )


@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--user-id", "-u", required=True, type=int, help="Rating user ID")
@click.option("--stars", "-s", required=True, type=click.IntRange(1, 5), help="Rating 1-5")
@click.option("--review", "-r", default=None, help="Optional review text")
def rate(novel_id, user_id, stars, review):
    """Rate a novel (replaces the user's previous rating)."""
    app = _app()
    try:
        result = app.ratings.rate(novel_id, user_id, stars, review)
    except NovelHubError as e:
        _fail(str(e))
    verb = "created" if result.created else "updated"
    console.print(
        f"[success]Rating {verb}[/]  average [stat.value]{result.average_rating:.2f}[/] "
        f"[muted]({result.total_ratings} ratings)[/]"
    )


# ---------------------------------------------------------------------------
# admin commands
# ---------------------------------------------------------------------------

@cli.command(name="clear-cache")
@click.option("--tag", "tags", multiple=True, help="Specific cache tag to clear (repeatable)")
def clear_cache(tags):
    """Clear novel-related caches."""
    app = _app()
    if tags:
        console.print(f"[info]Clearing cache tags: {', '.join(tags)}[/]")
    else:
        console.print("[info]Clearing all novel caches...[/]")
    cleared = app.admin.clear_caches(list(tags) or None)
    if not app.cache.supports_tags:
        console.print(
            f"[warning]Backend '{app.cache.backend_name}' has no tag support; "
            "only known keys were removed[/]"
        )
    console.print(f"[success]Cache cleared[/] [muted]({len(cleared)} tags)[/]")


@cli.command(name="fix-chapter-counts")
def fix_chapter_counts():
    """Recalculate total_chapters for all novels from their chapters."""
    app = _app()
    console.print("[info]Fixing chapter counts for all novels...[/]")
    fixes = app.admin.fix_chapter_counts()
    for fix in fixes:
        console.print(f"  Novel '{fix.title}': {fix.old_count} → {fix.new_count} chapters")
    if fixes:
        console.print(f"[success]Fixed {len(fixes)} novels with incorrect chapter counts.[/]")
    else:
        console.print("[success]All novels have correct chapter counts.[/]")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON stats")
def stats(as_json):
    """Content and engagement totals with the most used genres."""
    app = _app()
    dashboard = app.admin.dashboard_stats()
    if as_json:
        click.echo(json.dumps(dashboard.as_dict(), indent=2))
        return
    table = Table(title="Dashboard", border_style="dim")
    table.add_column("Stat", style="stat.label")
    table.add_column("Value", justify="right", style="stat.value")
    table.add_row("Novels", str(dashboard.total_novels))
    table.add_row("Chapters", str(dashboard.total_chapters))
    table.add_row("Ratings", str(dashboard.total_ratings))
    table.add_row("Novels this month", str(dashboard.novels_this_month))
    table.add_row("Total views", str(dashboard.total_views))
    table.add_row("Average rating", f"{dashboard.average_rating:.2f}")
    console.print(table)
    for name, count in dashboard.top_genres:
        console.print(f"  [accent]{name}[/] [muted]({count})[/]")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON report")
def health(as_json):
    """Check database, cache and storage, and summarize today's log errors."""
    app = _app()
    report = app.admin.health_check()
    if as_json:
        click.echo(json.dumps(report.as_dict(), indent=2))
    else:
        table = Table(title=f"Health: {report.status}", border_style="dim")
        table.add_column("Check")
        table.add_column("Status")
        for name, state in report.checks.items():
            color = "success" if state == "healthy" else "error"
            table.add_row(name, f"[{color}]{state}[/]")
        console.print(table)
        errors = report.recent_errors
        console.print(
            f"[stat.label]Errors today:[/] [stat.value]{errors.count_today}[/]  "
            f"[stat.label]Critical:[/] [stat.value]{errors.critical_errors}[/]"
        )
        for line in errors.latest:
            console.print(f"  [muted]{line}[/]")
    if report.status != "up":
        sys.exit(1)


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
