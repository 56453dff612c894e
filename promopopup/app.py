# ==============================================================================
# Promo Popup CLI
# ==============================================================================
"""
Command-line interface for popup analytics.

Usage:
    promopopup --help
    promopopup analytics my-store.myshopify.com --window 7d
    promopopup popup-analytics my-store.myshopify.com 42
    promopopup subscribers my-store.myshopify.com --search gmail
    promopopup config show
    promopopup db init
"""

import logging

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="promopopup",
    help="Promotional popup analytics CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Analytics commands are imported from promopopup.cli.analytics
from promopopup.cli.analytics import show_analytics, show_popup_analytics, show_subscribers

app.command("analytics")(show_analytics)
app.command("popup-analytics")(show_popup_analytics)
app.command("subscribers")(show_subscribers)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

from promopopup.cli.config import config_show

config_app.command("show")(config_show)

db_app = typer.Typer(
    help="Event log database operations",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")

from promopopup.cli.db import db_init

db_app.command("init")(db_init)


# ==============================================================================
# Entry Point
# ==============================================================================


def configure_logging() -> None:
    """Configure root logging from settings."""
    from promopopup.utils.config import get_settings

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.debug:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
