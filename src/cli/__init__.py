"""Main CLI application module.

This module provides the entry point of the chart release tool that CI
pipelines invoke once per stage.
"""

import typer

from .commands import release

# Create the main CLI application
app = typer.Typer(
    help="⎈ Chart release - Helm chart lifecycle for CI/CD pipelines",
    rich_markup_mode="rich",
    add_completion=False,
)

app.command()(release)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
