# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the promopopup CLI.
"""

import json
from typing import Annotated

import typer

from promopopup.cli.shared import C
from promopopup.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()

    if json_output:
        config = {
            "popup": {
                "app_url": settings.popup.app_url,
                "analytics_endpoint": settings.popup.analytics_endpoint,
                "config_endpoint": settings.popup.config_endpoint,
                "emit_timeout_seconds": settings.popup.emit_timeout_seconds,
                "config_timeout_seconds": settings.popup.config_timeout_seconds,
                "emit_workers": settings.popup.emit_workers,
            },
            "analytics": {
                "event_store": settings.analytics.event_store,
                "recent_limit": settings.analytics.recent_limit,
                "timezone": settings.analytics.timezone,
            },
            "postgresql": {
                "host": settings.postgres.host,
                "port": settings.postgres.port,
                "database": settings.postgres.database,
                "schema": settings.postgres.schema_name,
                "user": settings.postgres.user,
                "password": settings.postgres.password,
                "sslmode": settings.postgres.sslmode,
            },
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": settings.valkey.password,
                "visitor_state_ttl_days": settings.valkey.visitor_state_ttl_days,
            },
        }
        print(json.dumps(config, indent=2))
        return

    # Human-readable output
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Popup{C.RESET}")
    print(f"  App URL:    {C.WHITE}{settings.popup.app_url}{C.RESET}")
    emit = f"{settings.popup.emit_timeout_seconds}s timeout, {settings.popup.emit_workers} workers"
    print(f"  Emit:       {C.WHITE}{emit}{C.RESET}")
    print(f"  Config:     {C.WHITE}{settings.popup.config_timeout_seconds}s timeout{C.RESET}")
    print()

    print(f"{C.CYAN}Analytics{C.RESET}")
    print(f"  Store:      {C.WHITE}{settings.analytics.event_store}{C.RESET}")
    print(f"  Recent:     {C.WHITE}{settings.analytics.recent_limit} items{C.RESET}")
    print(f"  Timezone:   {C.WHITE}{settings.analytics.timezone}{C.RESET}")
    print()

    print(f"{C.CYAN}PostgreSQL{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.postgres.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.postgres.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{settings.postgres.database}{C.RESET}")
    print(f"  Schema:     {C.WHITE}{settings.postgres.schema_name}{C.RESET}")
    print(f"  User:       {C.WHITE}{settings.postgres.user}{C.RESET}")
    print(f"  SSL:        {C.WHITE}{settings.postgres.sslmode}{C.RESET}")
    print()

    print(f"{C.CYAN}Valkey{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.valkey.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.valkey.port}{C.RESET}")
    valkey_ssl = "enabled" if settings.valkey.ssl else "disabled"
    print(f"  SSL:        {C.WHITE}{valkey_ssl}{C.RESET}")
    print(f"  State TTL:  {C.WHITE}{settings.valkey.visitor_state_ttl_days} days{C.RESET}")
    print()
