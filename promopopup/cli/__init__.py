# ==============================================================================
# CLI Commands
# ==============================================================================
"""
Command modules for the promopopup CLI.

Each module holds plain functions registered on the Typer app in
promopopup.app.
"""
