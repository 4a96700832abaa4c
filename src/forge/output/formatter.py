"""Output formatting using Rich for terminal output."""

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.theme import Theme

from forge.orchestration.models import WorkflowResult, WorkflowState, WorkflowStatus

FORGE_THEME = Theme(
    {
        "state": "cyan",
        "state.done": "green",
        "state.error": "red bold",
        "success": "green",
        "error": "red bold",
        "warning": "yellow",
        "info": "blue",
        "metadata": "dim",
    }
)


class OutputFormatter:
    """Handles all output formatting for forge."""

    def __init__(self, color: bool = True, verbose: bool = False) -> None:
        self.console = Console(theme=FORGE_THEME, force_terminal=color, no_color=not color)
        self.verbose = verbose

    def print_result(self, result: WorkflowResult, show_metadata: bool = False) -> None:
        """Print a workflow result."""
        if result.is_error:
            self.print_error(result.metadata.error_message or "Unknown error")
            self.console.print(result.response)
            return

        if result.files:
            for f in result.files:
                self.console.print(Panel(Syntax(f.content, _lexer_for(f.path)), title=f.path, border_style="info"))
        elif result.code:
            self.console.print(Syntax(result.code, "text"))
        elif self._looks_like_markdown(result.response):
            self.console.print(Markdown(result.response))
        else:
            self.console.print(result.response)

        if show_metadata or self.verbose:
            self._print_metadata(result)

    def print_state(self, state: WorkflowState, details: dict) -> None:
        style = {"DONE": "state.done", "ERROR": "state.error"}.get(state.value, "state")
        extra = ", ".join(f"{k}={v}" for k, v in details.items())
        suffix = f" [metadata]({extra})[/metadata]" if extra and self.verbose else ""
        self.console.print(f"[{style}]→ {state.value}[/{style}]{suffix}")

    def print_status(self, status: WorkflowStatus, message: str) -> None:
        if self.verbose:
            self.console.print(f"[metadata]{status.value}: {message}[/metadata]")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[error]Error: {message}[/error]")

    def print_success(self, message: str) -> None:
        self.console.print(f"[success]{message}[/success]")

    def print_info(self, message: str) -> None:
        self.console.print(f"[info]{message}[/info]")

    def print_transitions(self, transitions: dict[WorkflowState, frozenset[WorkflowState]]) -> None:
        """Print the state transition table."""
        table = Table(title="Workflow States")
        table.add_column("State", style="cyan")
        table.add_column("Allowed Next States")

        order = list(WorkflowState)
        for state in order:
            targets = sorted(transitions.get(state, frozenset()), key=order.index)
            table.add_row(state.value, ", ".join(t.value for t in targets) or "-")

        self.console.print(table)

    def _print_metadata(self, result: WorkflowResult) -> None:
        meta = result.metadata
        quality = f"{meta.quality_score:.2f}" if meta.quality_score is not None else "n/a"
        parts = [
            f"quality={quality}",
            f"stop={meta.stop_reason}",
            f"executions={meta.execution_attempts}",
            f"revisions={meta.revision_attempts}",
            f"tokens={meta.tokens_used}",
            f"time={meta.execution_time:.2f}s",
            f"stages={','.join(meta.stages_executed)}",
        ]
        self.console.print(f"[metadata]({', '.join(parts)})[/metadata]")

    def _looks_like_markdown(self, text: str) -> bool:
        """Check if text appears to be markdown."""
        markdown_indicators = ["```", "##", "**", "- ", "1. ", "> ", "| "]
        return any(indicator in text for indicator in markdown_indicators)


def _lexer_for(path: str) -> str:
    suffix = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return {
        "py": "python",
        "js": "javascript",
        "jsx": "jsx",
        "ts": "typescript",
        "tsx": "tsx",
        "html": "html",
        "css": "css",
        "json": "json",
        "vue": "html",
    }.get(suffix, "text")


# Global formatter instance
_formatter: OutputFormatter | None = None


def get_formatter(color: bool = True, verbose: bool = False) -> OutputFormatter:
    """Get or create the global formatter instance."""
    global _formatter
    if _formatter is None:
        _formatter = OutputFormatter(color=color, verbose=verbose)
    return _formatter


def reset_formatter() -> None:
    global _formatter
    _formatter = None
