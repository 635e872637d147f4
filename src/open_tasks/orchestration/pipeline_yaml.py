"""Pydantic models for pipeline YAML files.

A pipeline file lists commands to run, in order, inside a single run so
tokens registered by one step can be requested by later steps.

Usage::

    from open_tasks.orchestration.pipeline_yaml import PipelineSpec

    spec = PipelineSpec.from_yaml_file("pipelines/report.yaml")
    for step in spec.spec.steps:
        ...

Example YAML::

    apiVersion: open-tasks/v1
    kind: Pipeline
    metadata:
      name: report
      description: Extract numbers and fill a template
    spec:
      defaults:
        timeout_seconds: 30
      steps:
        - command: load
          args: [data/input.txt]
          token: raw
        - command: extract
          args: ["\\\\d+", --all]
          refs: [raw]
          token: numbers
        - command: replace
          args: ["Found: {{numbers}}"]
          refs: [numbers]

Tags:
    open-tasks, orchestration, yaml, declarative, pipeline

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from open_tasks.core.errors import InputValidationError


class PipelineMetadataSpec(BaseModel):
    """Metadata section of a pipeline spec."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Pipeline name")
    description: str = Field(default="", description="Human-readable description")
    tags: list[str] = Field(default_factory=list)


class PipelineDefaultsSpec(BaseModel):
    """Values applied to every step that does not set its own."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float | None = Field(default=None, gt=0)
    options: dict[str, Any] = Field(default_factory=dict)


class PipelineStepSpec(BaseModel):
    """One command invocation."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, description="Step name (defaults to the command name)")
    command: str = Field(..., min_length=1, description="Registered command name")
    args: list[str] = Field(default_factory=list)
    refs: list[str] = Field(default_factory=list, description="Tokens to resolve before the step runs")
    token: str | None = Field(default=None, description="Token for the step's result")
    timeout_seconds: float | None = Field(default=None, gt=0)
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _stringify_args(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(a) for a in v]
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.command


class PipelineSpecSection(BaseModel):
    """The 'spec' section containing defaults and steps."""

    model_config = ConfigDict(extra="forbid")

    defaults: PipelineDefaultsSpec = Field(default_factory=PipelineDefaultsSpec)
    steps: list[PipelineStepSpec] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_step_names(self) -> PipelineSpecSection:
        names = [s.name for s in self.steps if s.name]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate step names: {sorted(duplicates)}")
        return self

    def resolved_steps(self) -> list[PipelineStepSpec]:
        """Steps with pipeline defaults filled in."""
        result = []
        for step in self.steps:
            result.append(
                step.model_copy(
                    update={
                        "timeout_seconds": step.timeout_seconds or self.defaults.timeout_seconds,
                        "options": {**self.defaults.options, **step.options},
                    }
                )
            )
        return result


class PipelineSpec(BaseModel):
    """Complete YAML pipeline specification."""

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["open-tasks/v1"] = Field(default="open-tasks/v1")
    kind: Literal["Pipeline"] = Field(default="Pipeline")
    metadata: PipelineMetadataSpec
    spec: PipelineSpecSection

    @classmethod
    def from_yaml(cls, content: str, *, source: str = "<string>") -> PipelineSpec:
        """Parse and validate YAML text.

        Raises:
            InputValidationError: If the YAML is malformed or fails validation
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise InputValidationError(f"Invalid YAML in {source}: {e}", cause=e).with_context(path=source)
        if not isinstance(data, dict):
            raise InputValidationError(f"Pipeline file {source} must contain a mapping").with_context(path=source)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InputValidationError(f"Invalid pipeline {source}: {e}", cause=e).with_context(path=source)

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> PipelineSpec:
        source = Path(path)
        try:
            content = source.read_text(encoding="utf-8")
        except OSError as e:
            raise InputValidationError(f"Cannot read pipeline file {source}: {e}", cause=e).with_context(
                path=str(source)
            )
        return cls.from_yaml(content, source=str(source))
