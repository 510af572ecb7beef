"""CLI module - Typer command line interface."""
