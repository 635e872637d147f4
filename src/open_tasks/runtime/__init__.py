"""
Runtime: runs commands, wires contexts, and reports failures.
"""

from open_tasks.runtime.output_handler import OutputHandler, format_error_report
from open_tasks.runtime.runner import PipelineRunner, StepOutcome, build_registry

__all__ = [
    "PipelineRunner",
    "StepOutcome",
    "OutputHandler",
    "build_registry",
    "format_error_report",
]
