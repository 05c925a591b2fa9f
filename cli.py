"""CLI entry point for laserkongen-proxy."""

import sys
from datetime import datetime

from rich.console import Console
from rich.table import Table

from app import create_app
from core.config import CONFIG_FILE, apply_env_overrides, load_config
from core.exceptions import ConfigurationError
from core.routes import RouteTable
from ui.dashboard import Dashboard
from ui.log_utils import clear_logs, shutdown_log_executor, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    try:
        config = apply_env_overrides(load_config())
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)

    # Handle CLI arguments
    if len(sys.argv) > 1:
        arg = sys.argv[1]

        if arg == "--config":
            console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
            console.print(f"[bold]Backend:[/bold] {config.backend.base_url}")
            console.print(f"[bold]Timeout:[/bold] {config.backend.timeout}s")
            return

        if arg == "--routes":
            console.print(build_routes_table(RouteTable()))
            return

        if arg in ("--help", "-h"):
            _print_help()
            return

        console.print(f"[red][ERROR][/red] Unknown option: {arg}")
        _print_help()
        sys.exit(2)

    # Clear previous logs and start dashboard
    clear_logs()
    dashboard = Dashboard(config)

    import uvicorn

    app = create_app(config, dashboard)

    # Run with dashboard
    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
        timeout_keep_alive=config.limits.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    dashboard.start()
    start_time = datetime.now()
    write_cli_log(
        "STARTUP",
        "Proxy started",
        port=config.proxy.port,
        backend=config.backend.base_url,
    )
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        shutdown_log_executor()
        dashboard.stop()


def build_routes_table(routes: RouteTable) -> Table:
    """Render the route table for ``--routes``."""
    table = Table(title="Proxied routes", header_style="bold")
    table.add_column("Route")
    table.add_column("Path")
    table.add_column("Methods")
    table.add_column("Auth", justify="center")
    table.add_column("Backend")
    table.add_column("Rules", style="dim")

    for route in routes.routes():
        backend = route.path_template or route.path
        if route.backend_method:
            backend = f"{route.backend_method} {backend}"
        table.add_row(
            route.name,
            route.path,
            ", ".join(sorted(route.allowed_methods)),
            "yes" if route.requires_auth else "",
            backend,
            ", ".join(rule.name for rule in route.rules),
        )
    return table


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Laserkongen Proxy[/bold cyan]

Forwards the storefront's /api/* requests to the Laserkongen backend.

[bold]Usage:[/bold]
    laserkongen-proxy              Start with live dashboard
    laserkongen-proxy --config     Show config location and backend URL
    laserkongen-proxy --routes     List proxied routes
    laserkongen-proxy --help       Show this help

[bold]Environment:[/bold]
    BACKEND_URL / NEXT_PUBLIC_API_URL   Backend base URL (default http://localhost:5001)
    PROXY_PORT                          Listen port
    PROXY_DEBUG                         Write per-request logs and error details
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
