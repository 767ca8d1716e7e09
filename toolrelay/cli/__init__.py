"""toolrelay command line interface."""

from toolrelay.cli.main import cli, main

__all__ = ["cli", "main"]
