"""Real-time CLI dashboard for proxy monitoring."""

from datetime import datetime
from threading import Lock
from typing import Any

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from ui.log_utils import submit_log, write_backend_log, write_cli_log, write_incoming_log

console = Console()

OUTCOME_STYLES = {
    "relayed": "green",
    "unreachable": "red",
    "method_rejected": "yellow",
    "auth_rejected": "yellow",
    "validation_rejected": "yellow",
}


class ForwardInfo:
    """Info about a single forwarded request."""

    def __init__(
        self,
        route: str,
        method: str,
        path: str,
        status: int,
        outcome: str,
        elapsed_ms: float,
        timestamp: datetime,
    ):
        self.route = route
        self.method = method
        self.path = path[:50] + "..." if len(path) > 50 else path
        self.status = status
        self.outcome = outcome
        self.elapsed_ms = elapsed_ms
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing forwarded requests and errors."""

    def __init__(self, config: Config):
        self.config = config
        self._lock = Lock()
        self._recent: list[ForwardInfo] = []
        self._max_recent = 12
        self._counts = {"forwarded": 0, "rejected": 0, "errors": 0}
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def log_incoming(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: Any,
    ) -> None:
        if self.config.proxy.debug:
            submit_log(write_incoming_log, method, path, headers, body)

    def log_forward(
        self,
        route: str,
        method: str,
        path: str,
        status: int,
        *,
        outcome: str,
        elapsed_ms: float,
    ) -> None:
        """Log a request that reached the dispatch step."""
        with self._lock:
            self._counts["forwarded"] += 1
            self._recent.insert(
                0,
                ForwardInfo(route, method, path, status, outcome, elapsed_ms, datetime.now()),
            )
            self._recent = self._recent[: self._max_recent]
            self._refresh()

        if self.config.proxy.debug:
            submit_log(
                write_backend_log,
                route,
                method,
                path,
                status,
                outcome=outcome,
                elapsed_ms=elapsed_ms,
            )
        submit_log(write_cli_log, "FORWARD", f"{method} {path}", route=route, status=status)

    def log_rejection(self, route: str, status: int, message: str) -> None:
        """Log a request stopped before any backend call."""
        with self._lock:
            self._counts["rejected"] += 1
            self._refresh()
        submit_log(write_cli_log, "REJECT", message[:200], route=route, status=status)

    def log_error(self, route: str, status: int, message: str) -> None:
        """Log an error."""
        with self._lock:
            self._counts["errors"] += 1
            truncated = message[:50] + "..." if len(message) > 50 else message
            self._errors.insert(0, f"{route} {status}: {truncated}")
            self._errors = self._errors[:3]
            self._refresh()
        submit_log(write_cli_log, "ERROR", message[:200], route=route, status=status)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )
        layout["header"].update(self._build_header())
        layout["body"].update(self._build_requests_panel())
        layout["footer"].update(self._build_footer())
        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("Laserkongen Proxy", style="bold cyan")
        stats.append("  |  ")
        stats.append(f"Forwarded: {self._counts['forwarded']}", style="green")
        stats.append("  |  ")
        stats.append(f"Rejected: {self._counts['rejected']}", style="yellow")
        stats.append("  |  ")
        stats.append(f"Errors: {self._counts['errors']}", style="red")
        stats.append("  |  ")
        stats.append(f"Backend: {self.config.backend.base_url}", style="dim")

        return Panel(stats, style="cyan")

    def _build_requests_panel(self) -> Panel:
        """Build the recent requests table."""
        if self._recent:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Route", width=24)
            table.add_column("Method", width=7)
            table.add_column("Path", ratio=2)
            table.add_column("Status", width=6)
            table.add_column("ms", width=7, justify="right")

            for info in self._recent:
                style = OUTCOME_STYLES.get(info.outcome, "white")
                table.add_row(
                    info.timestamp.strftime("%H:%M:%S"),
                    info.route,
                    info.method,
                    info.path,
                    f"[{style}]{info.status}[/{style}]",
                    f"{info.elapsed_ms:.0f}",
                )
            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[green]Forwarded requests[/green]", border_style="green")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            content = Text(
                f"Listening on http://{self.config.proxy.host}:{self.config.proxy.port}",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
