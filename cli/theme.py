"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

from models.enums import NovelStatus

NOVEL_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "genre": "bold",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
    "score": "bold cyan",
})

STATUS_COLORS = {
    NovelStatus.ONGOING: "green",
    NovelStatus.COMPLETED: "cyan",
    NovelStatus.HIATUS: "yellow",
}


def get_console() -> Console:
    """Return a Console instance with the novel theme applied."""
    return Console(theme=NOVEL_THEME)


def app_header(title: str = "novelhub") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "New novel").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def status_label(status: NovelStatus) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/]"


def novel_summary_panel(novel) -> Panel:
    """Return a Panel with novel stats and description.

    Args:
        novel: Novel with .title, .author, .genres, .rating, .views, .total_chapters.
    """
    description = novel.description or ""
    if len(description) > 200:
        description = description[:200] + "..."
    genres = ", ".join(g.name for g in novel.genres) or "-"

    body = (
        f"  [stat.label]Author:[/] [stat.value]{novel.author or '-'}[/]  "
        f"[muted]|[/]  [stat.label]Status:[/] {status_label(novel.status)}  "
        f"[muted]|[/]  [stat.label]Genres:[/] [genre]{genres}[/]\n"
        f"  [stat.label]Rating:[/] [stat.value]{novel.rating:.2f}[/] "
        f"[muted]({novel.rating_count} ratings)[/]  "
        f"[muted]|[/]  [stat.label]Views:[/] [stat.value]{novel.views:,}[/]  "
        f"[muted]|[/]  [stat.label]Chapters:[/] [stat.value]{novel.total_chapters}[/]\n"
        f"  [stat.label]About:[/] {description}"
    )
    return Panel(
        body,
        title=f"[bold]{novel.title}[/] [muted](ID: {novel.id}, {novel.slug})[/]",
        box=box.ROUNDED,
        border_style="dim",
        padding=(0, 2),
    )


def novel_table(novels: list, title: str = "Novels") -> Table:
    """Build a Rich Table listing novels."""
    table = Table(title=title, show_lines=False, border_style="dim")
    table.add_column("ID", style="chapter.num")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Genres", style="genre")
    table.add_column("Status")
    table.add_column("Rating", justify="right")
    table.add_column("Views", justify="right")
    table.add_column("Chapters", justify="right")

    for n in novels:
        table.add_row(
            str(n.id),
            n.title,
            n.author or "-",
            ", ".join(g.name for g in n.genres) or "-",
            status_label(n.status),
            f"{n.rating:.2f}",
            f"{n.views:,}",
            str(n.total_chapters),
        )
    return table


def related_table(related) -> Table:
    """Build a Rich Table of related novels; score column omitted for the fallback list."""
    title = "Popular novels" if related.fallback else "Related novels"
    table = Table(title=title, border_style="dim")
    table.add_column("#", style="muted", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    if not related.fallback:
        table.add_column("Score", style="score", justify="right")
    table.add_column("Views", justify="right")

    for rank, item in enumerate(related.items, start=1):
        row = [str(rank), item.novel.title, item.novel.author or "-"]
        if not related.fallback:
            row.append(f"{item.score:.1f}")
        row.append(f"{item.novel.views:,}")
        table.add_row(*row)
    return table
