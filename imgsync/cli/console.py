"""Console output for the CLI.

Provides a Console class that wraps rich for consistent output, and a
ProgressReporter that renders pipeline progress through it.
"""

from typing import Any

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.table import Table

from imgsync.domain.image.model.overview import Overview
from imgsync.domain.shared.port.reporter import ProgressReporter


class Console:
    """CLI output manager wrapping rich."""

    def __init__(
        self,
        *,
        force_terminal: bool | None = None,
        quiet: bool = False,
    ) -> None:
        self._console = RichConsole(force_terminal=force_terminal, stderr=False)
        self._err_console = RichConsole(force_terminal=force_terminal, stderr=True)
        self._quiet = quiet

    @property
    def rich(self) -> RichConsole:
        return self._console

    # -------------------------------------------------------------------------
    # Status messages
    # -------------------------------------------------------------------------

    def success(self, message: str) -> None:
        self._console.print(f"[green]✓[/green] {message}")

    def error(self, message: str, *, hint: str | None = None) -> None:
        """Print an error message to stderr."""
        self._err_console.print(f"[red]✗[/red] {message}")
        if hint:
            self._err_console.print(f"  [dim]{hint}[/dim]")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]⚠[/yellow] {message}")

    def info(self, message: str) -> None:
        """Print an info message (suppressed in quiet mode)."""
        if not self._quiet:
            self._console.print(f"[dim]{message}[/dim]")

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._console.print(*args, **kwargs)

    def panel(self, content: str, *, title: str | None = None, border_style: str = "dim") -> None:
        self._console.print(Panel(content, title=title, border_style=border_style))

    # -------------------------------------------------------------------------
    # Image overview
    # -------------------------------------------------------------------------

    def overview(self, snapshot: Overview) -> None:
        """Print one row per (chart, image) with a presence column per registry."""
        table = Table(title="Images", show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=3)
        table.add_column("Chart")
        table.add_column("Image")
        table.add_column("Value paths", style="dim")
        table.add_column("Patch")
        for name in snapshot.registries:
            table.add_column(name, justify="center")

        for i, row in enumerate(snapshot.rows, 1):
            marks = ["[green]✓[/green]" if p else "[red]✗[/red]" for p in row.presence]
            table.add_row(
                str(i), row.chart, row.image, "\n".join(row.value_paths), row.patch, *marks
            )

        self._console.print(table)
        if snapshot.missing:
            self.info(f"{snapshot.missing} image(s) missing from at least one registry")


class RichReporter(ProgressReporter):
    """Progress bars and the overview table on a Console."""

    def __init__(self, console: Console) -> None:
        self._console = console
        self._progress: Progress | None = None
        self._task: TaskID | None = None

    async def overview(self, snapshot: Overview) -> None:
        self._console.overview(snapshot)

    def start(self, description: str, total: int) -> None:
        self.finish()
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=self._console.rich,
            transient=False,
        )
        self._progress.start()
        self._task = self._progress.add_task(description, total=total)

    def advance(self) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.advance(self._task)

    def finish(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None


# Module-level default instance for convenience
_default: Console | None = None


def get_console() -> Console:
    """Get the default console instance."""
    global _default
    if _default is None:
        _default = Console()
    return _default
