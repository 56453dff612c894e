# ==============================================================================
# Analytics Commands
# ==============================================================================
"""
Analytics commands for the promopopup CLI.

Reads the event log and prints the popup funnel, hourly trend, prize
distribution, recent activity and subscriber profiles.
"""

import json
from datetime import datetime, timezone
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from promopopup.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    get_analytics_service,
    print_error,
)
from promopopup.core.errors import AggregationUnavailable, InvalidInput
from promopopup.core.models import Summary

WindowOption = Annotated[
    str, typer.Option("--window", "-w", help="Trailing window: 24h, 7d or 30d")
]
JsonOption = Annotated[
    bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
]


# ==============================================================================
# Formatting Helpers
# ==============================================================================


def _print_funnel(summary: Summary, width: int) -> None:
    """Print the funnel counts with their conversion rates."""
    rows = [
        ("Views", summary.total_views, None),
        ("  -> Emails Entered", summary.emails_entered, summary.email_conversion_rate),
        ("  -> Spins", summary.spins, summary.spin_conversion_rate),
        ("  -> Wins", summary.wins, summary.win_rate),
        ("  -> Codes Copied", summary.codes_copied, summary.copy_rate),
    ]
    for label, count, rate in rows:
        rate_text = f"{rate:>9.1f}%" if rate is not None else " " * 10
        print(_box_line(f"  {label:<26}{count:>12,}  {rate_text}", width))
    print(_box_line(f"  {'Losses':<26}{summary.loses:>12,}", width))
    print(_box_line(f"  {'Closes':<26}{summary.closes:>12,}", width))


def _run(fn, json_output: bool):
    """Call a service method, mapping failures to exit codes."""
    service = None
    try:
        service = get_analytics_service()
        return fn(service)
    except AggregationUnavailable as e:
        print_error(f"Analytics unavailable: {e}", json_output)
        raise typer.Exit(1)
    except InvalidInput as e:
        print_error(e.user_message, json_output)
        raise typer.Exit(2)
    finally:
        if service is not None:
            service.close()


# ==============================================================================
# Commands
# ==============================================================================


def show_analytics(
    shop: Annotated[str, typer.Argument(help="Shop domain, e.g. my-store.myshopify.com")],
    window: WindowOption = "24h",
    popup_id: Annotated[
        str | None, typer.Option("--popup", "-p", help="Restrict to one popup id")
    ] = None,
    recent: Annotated[
        int | None, typer.Option("--recent", "-r", help="Recent activity items (10-15)")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Show the popup analytics report for a shop.

    Examples:
        promopopup analytics my-store.myshopify.com
        promopopup analytics my-store.myshopify.com --window 7d --json
    """
    report = _run(
        lambda service: service.report(shop, window, popup_id=popup_id, recent_limit=recent),
        json_output,
    )

    if json_output:
        print(report.model_dump_json(indent=2))
        return

    W = BOX_WIDTH
    INNER = W - 2

    print()
    print(_box_header(f"POPUP ANALYTICS ({report.window.value})", W))
    print(_empty_line(W))
    print(_box_line(f"  {C.DIM}{report.shop}{C.RESET}", W))
    print(_empty_line(W))
    print(_box_line(f"  {'':26}{'Count':>12}  {'Rate':>10}", W))
    print(_box_line("  " + "─" * (INNER - 4), W))
    _print_funnel(report.summary, W)
    print(_empty_line(W))

    # Hourly trend (trailing 24h)
    print(_box_line(f"  {C.BOLD}Last 24 Hours{C.RESET}  {C.DIM}hour  views emails wins{C.RESET}", W))
    for bucket in report.hourly:
        if bucket.views or bucket.emails or bucket.wins:
            row = f"  {'':15}{bucket.hour:>4}  {bucket.views:>5} {bucket.emails:>6} {bucket.wins:>4}"
            print(_box_line(row, W))
    print(_empty_line(W))

    # Prize distribution
    print(_box_line(f"  {C.BOLD}Prizes Won{C.RESET}", W))
    if not report.prize_distribution:
        print(_box_line(f"  {C.DIM}No prizes won{C.RESET}", W))
    for label, count in report.prize_distribution.items():
        print(_box_line(f"  {I.BULLET} {label:<36}{count:>12,}", W))
    print(_empty_line(W))

    # Recent activity
    print(_box_line(f"  {C.BOLD}Recent Activity{C.RESET}", W))
    if not report.recent_activity:
        print(_box_line(f"  {C.DIM}No activity{C.RESET}", W))
    for item in report.recent_activity:
        who = item.email or item.session_id
        row = f"  {item.event_type.value:<14}{who[:32]:<34}{item.time_ago:>14}"
        print(_box_line(row, W))

    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def show_popup_analytics(
    shop: Annotated[str, typer.Argument(help="Shop domain")],
    popup_id: Annotated[str, typer.Argument(help="Popup id")],
    window: WindowOption = "30d",
    json_output: JsonOption = False,
) -> None:
    """Show the funnel and unique subscriber count for one popup."""
    report = _run(lambda service: service.popup_report(shop, popup_id, window), json_output)

    if json_output:
        print(report.model_dump_json(indent=2))
        return

    W = BOX_WIDTH
    print()
    print(_box_header(f"POPUP {report.popup_id} ({report.window.value})", W))
    print(_empty_line(W))
    _print_funnel(report.summary, W)
    print(_empty_line(W))
    print(_box_line(f"  {'Unique Subscribers':<26}{report.subscribers:>12,}", W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def show_subscribers(
    shop: Annotated[str, typer.Argument(help="Shop domain")],
    search: Annotated[
        str, typer.Option("--search", "-s", help="Filter by email substring")
    ] = "",
    json_output: JsonOption = False,
) -> None:
    """List visitors who entered an email, most recently active first."""
    profiles = _run(lambda service: service.subscribers(shop, search=search), json_output)

    if json_output:
        print(json.dumps([p.model_dump(mode="json") for p in profiles], indent=2))
        return

    if not profiles:
        print()
        print(f"  {C.DIM}No subscribers{C.RESET}")
        print()
        return

    console = Console()
    table = Table(
        title=f"Subscribers ({len(profiles)})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Email", justify="left")
    table.add_column("Views", justify="right")
    table.add_column("Spins", justify="right")
    table.add_column("Wins", justify="right")
    table.add_column("Copied", justify="right")
    table.add_column("Prizes", justify="left")
    table.add_column("Last Active (UTC)", justify="left")

    for profile in profiles:
        last = datetime.fromtimestamp(profile.last_activity / 1000.0, tz=timezone.utc)
        prizes = ", ".join(f"{p.prize} ({p.code or '-'})" for p in profile.prizes_won)
        table.add_row(
            profile.email,
            f"{profile.views:,}",
            f"{profile.spins:,}",
            f"{profile.wins:,}",
            f"{profile.codes_copied:,}",
            prizes or "-",
            f"{last:%Y-%m-%d %H:%M}",
        )

    print()
    console.print(table)
    print()
