"""
CLI layer for open-tasks.

Provides a Typer application that delegates to the runtime layer
(``open_tasks.runtime``).  This package handles only terminal transport:
argument parsing, verbosity flags, and exit codes.

Entry point::

    open-tasks --help
"""

from open_tasks.cli.app import app

__all__ = ["app"]
