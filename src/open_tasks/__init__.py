"""
open-tasks - chain commands through stored, token-addressable references.

Layers:
- open_tasks.core: errors and configuration
- open_tasks.framework: diagnostic logging and user-facing output
- open_tasks.orchestration: workflow store, decorators, reference manager
- open_tasks.commands: command contract, registry, plugin loader
- open_tasks.runtime: the runner that wires a command invocation together
"""

__version__ = "0.1.0"

from open_tasks.core import *  # noqa
from open_tasks.core import __all__ as _core_all

__all__ = ["__version__", *_core_all]
