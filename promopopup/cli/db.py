# ==============================================================================
# Database Commands
# ==============================================================================
"""
Database commands for the promopopup CLI.
"""

import typer

from promopopup.cli.shared import C, I
from promopopup.core.errors import AggregationUnavailable
from promopopup.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def db_init() -> None:
    """Create the PostgreSQL schema and popup_analytics table.

    Safe to run repeatedly; existing objects are left untouched.
    """
    import psycopg2

    from promopopup.infrastructure.repositories.postgresql import PostgreSQLEventRepository

    settings = get_settings()

    print()
    print(f"  {C.BOLD}Initializing PostgreSQL{C.RESET}")

    repository = PostgreSQLEventRepository(settings)
    try:
        repository.connect()
        print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} PostgreSQL is reachable")
        repository.init_schema()
    except (AggregationUnavailable, psycopg2.Error) as e:
        print(f"  {C.BRIGHT_RED}{I.CROSS}{C.RESET} Schema initialization failed")
        print(f"    {C.DIM}{e}{C.RESET}")
        raise typer.Exit(1)
    finally:
        repository.close()

    print(
        f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Schema "
        f"{C.WHITE}{settings.postgres.schema_name}{C.RESET} ready"
    )
    print()
