"""
Output - Rich console output formatting.

Provides pretty-printed output with colors and formatting.
"""

import sys
from typing import Optional

from ..application.sync import ReconcileResult, SyncPlan
from ..core.domain import SyncState


class Colors:
    """ANSI color codes."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"

    BG_YELLOW = "\033[43m"


class Symbols:
    """Unicode symbols for output."""

    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    DOT = "•"
    WARN = "⚠"
    INFO = "ℹ"
    GEAR = "⚙"


PLAN_COLORS = {
    "create": Colors.GREEN,
    "update": Colors.YELLOW,
    "delete": Colors.RED,
    "error": Colors.RED,
    "noop": Colors.DIM,
    "wait": Colors.DIM,
    "none": Colors.DIM,
}


class Console:
    """Console output helper with colors and formatting."""

    def __init__(self, color: bool = True, verbose: bool = False):
        self.color = color and sys.stdout.isatty()
        self.verbose = verbose

    def _c(self, text: str, *codes: str) -> str:
        """Apply color codes to text."""
        if not self.color:
            return text
        return "".join(codes) + text + Colors.RESET

    def print(self, text: str = "") -> None:
        """Print text."""
        print(text)

    def section(self, text: str) -> None:
        """Print a section header."""
        self.print()
        self.print(self._c(f"{Symbols.ARROW} {text}", Colors.BOLD, Colors.BLUE))

    def success(self, text: str) -> None:
        """Print success message."""
        self.print(self._c(f"  {Symbols.CHECK} {text}", Colors.GREEN))

    def error(self, text: str) -> None:
        """Print error message."""
        self.print(self._c(f"  {Symbols.CROSS} {text}", Colors.RED))

    def info(self, text: str) -> None:
        """Print info message."""
        self.print(self._c(f"  {Symbols.INFO} {text}", Colors.CYAN))

    def detail(self, text: str) -> None:
        """Print detail text (dimmed)."""
        self.print(self._c(f"    {text}", Colors.DIM))

    def item(self, text: str, status: Optional[str] = None) -> None:
        """Print a list item."""
        status_str = ""
        if status == "ok":
            status_str = self._c(f" [{Symbols.CHECK}]", Colors.GREEN)
        elif status == "fail":
            status_str = self._c(f" [{Symbols.CROSS}]", Colors.RED)
        elif status:
            status_str = self._c(f" [{status}]", Colors.DIM)

        self.print(f"    {Symbols.DOT} {text}{status_str}")

    def table(self, headers: list[str], rows: list[list[str]]) -> None:
        """Print a simple table."""
        # Calculate column widths
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(widths):
                    widths[i] = max(widths[i], len(str(cell)))

        # Print header
        header_line = "  " + "  ".join(
            self._c(h.ljust(widths[i]), Colors.BOLD)
            for i, h in enumerate(headers)
        )
        self.print(header_line)
        self.print("  " + "  ".join("-" * w for w in widths))

        # Print rows
        for row in rows:
            row_line = "  " + "  ".join(
                str(cell).ljust(widths[i]) if i < len(widths) else str(cell)
                for i, cell in enumerate(row)
            )
            self.print(row_line)

    def dry_run_banner(self) -> None:
        """Print dry-run mode banner."""
        self.print()
        banner = f"  {Symbols.GEAR} DRY-RUN MODE - No changes will be made"
        if self.color:
            self.print(f"{Colors.BG_YELLOW}{Colors.BOLD}{banner}{Colors.RESET}")
        else:
            self.print(f"*** {banner} ***")
        self.print()

    # -------------------------------------------------------------------------
    # SyncState rendering
    # -------------------------------------------------------------------------

    def sync_states(self, states: list[SyncState]) -> None:
        """Print a status table of SyncStates."""
        if not states:
            self.info("No SyncStates")
            return

        rows = []
        for state in states:
            phase = state.status.phase.value
            if state.deletion_requested:
                phase += " (deleting)"
            rows.append([
                state.name,
                state.resource_type.kind,
                state.external_id,
                phase,
                str(len(state.sources)),
                state.status.last_error or "",
            ])
        self.table(["NAME", "TYPE", "EXTERNAL ID", "PHASE", "SOURCES", "LAST ERROR"], rows)

    def plan(self, plan: SyncPlan) -> None:
        """Print one dry-run plan."""
        action = self._c(plan.action.upper().ljust(6), PLAN_COLORS.get(plan.action, ""))
        self.print(f"  {action} {plan.name}")
        if plan.reason:
            self.detail(plan.reason)
        if self.verbose and plan.config:
            for key, value in sorted(plan.config.items()):
                self.detail(f"{key}: {value}")

    def reconcile_result(self, name: str, result: ReconcileResult) -> None:
        """Print the outcome of one reconcile."""
        if result.action in ("error", "delete-failed", "failed"):
            self.error(f"{name}: {result.action} (retry in {result.requeue_after:.0f}s)")
        elif result.action in ("synced", "deleted"):
            self.success(f"{name}: {result.action}")
        elif result.action == "backoff":
            self.item(name, f"backing off (retry in {result.requeue_after:.0f}s)")
        else:
            self.item(name, result.action)

    def confirm(self, message: str) -> bool:
        """Ask for confirmation."""
        prompt = self._c(f"\n{Symbols.WARN} {message} (y/N): ", Colors.YELLOW)
        try:
            response = input(prompt).strip().lower()
            return response in ("y", "yes")
        except (EOFError, KeyboardInterrupt):
            self.print()
            return False
