"""shopqa CLI - command line interface for shopqa."""

from shopqa.cli.commands import cli


def main() -> None:
    """Main entry point for the shopqa CLI."""
    cli()


__all__ = ["main", "cli"]
