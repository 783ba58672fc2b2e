"""Entry point for deskmodes when run as a module."""

from .cli import cli

if __name__ == "__main__":
    cli()
