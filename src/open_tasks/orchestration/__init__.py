"""
Orchestration: storing values, decorating them, and passing references.

Usage:
    from open_tasks.orchestration import (
        ReferenceManager, TokenDecorator, WorkflowContext,
    )

    ctx = WorkflowContext(output_root, command_name="store")
    refs = ReferenceManager()
    memory = await ctx.store("hello", [TokenDecorator("greeting")])
    handle = refs.from_memory(memory)
    refs.resolve("greeting").content   # "hello"
"""

from open_tasks.orchestration.decorators import (
    Decorator,
    FileNameDecorator,
    MetadataDecorator,
    PendingRecord,
    TimestampedFileNameDecorator,
    TokenDecorator,
    TransformMetadataDecorator,
    apply_decorators,
)
from open_tasks.orchestration.models import MemoryReference, ReferenceHandle
from open_tasks.orchestration.pipeline_yaml import PipelineSpec, PipelineStepSpec
from open_tasks.orchestration.references import ReferenceManager, TokenPolicy
from open_tasks.orchestration.workflow_context import (
    WorkflowContext,
    serialize_record,
    strip_front_matter,
    validate_output_path,
)

__all__ = [
    # Decorators
    "Decorator",
    "PendingRecord",
    "TokenDecorator",
    "FileNameDecorator",
    "MetadataDecorator",
    "TimestampedFileNameDecorator",
    "TransformMetadataDecorator",
    "apply_decorators",
    # Models
    "MemoryReference",
    "ReferenceHandle",
    # Context / references
    "WorkflowContext",
    "ReferenceManager",
    "TokenPolicy",
    "serialize_record",
    "strip_front_matter",
    "validate_output_path",
    # Pipelines
    "PipelineSpec",
    "PipelineStepSpec",
]
