"""Tests for open_tasks.runtime.output_handler."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from open_tasks.core.errors import OutputWriteError, ReferenceNotFoundError
from open_tasks.framework.output import EventKind, TaskLogger
from open_tasks.orchestration import WorkflowContext
from open_tasks.runtime import OutputHandler, format_error_report


@pytest.fixture
def handler(output_root, synk) -> OutputHandler:
    task = TaskLogger(synk, "report")
    return OutputHandler(WorkflowContext(output_root, command_name="report", logger=task))


class TestWriteOutput:
    async def test_writes_into_invocation_dir(self, handler, synk):
        path = await handler.write_output("# Report", "report.md")
        assert path.parent == handler.workflow_context.invocation_dir
        assert path.read_text(encoding="utf-8") == "# Report"
        assert synk.of_kind(EventKind.FILE_CREATED)[0].message == str(path)

    async def test_custom_path(self, handler, tmp_path):
        path = await handler.write_output("x", "copy.txt", custom_path=tmp_path / "elsewhere")
        assert path == tmp_path / "elsewhere" / "copy.txt"
        assert not handler.workflow_context.has_invocation_dir

    async def test_never_overwrites(self, handler):
        await handler.write_output("one", "same.txt")
        with pytest.raises(OutputWriteError):
            await handler.write_output("two", "same.txt")

    async def test_rejects_escaping_names(self, handler):
        with pytest.raises(OutputWriteError):
            await handler.write_output("x", "../up.txt")


class TestWriteError:
    def test_error_report_file(self, handler, synk):
        error = ReferenceNotFoundError("raw").with_context(command="extract")
        path = handler.write_error(error, {"duration_ms": 1.5})

        assert path.name.endswith("-error.txt")
        assert path.parent == handler.workflow_context.invocation_dir
        text = path.read_text(encoding="utf-8")
        assert "Error: ReferenceNotFoundError" in text
        assert "Category: REFERENCE" in text
        assert "Exit code: 3" in text
        assert '"duration_ms": 1.5' in text
        assert synk.of_kind(EventKind.FILE_CREATED) == []


class TestFormatErrorReport:
    def test_plain_exception(self):
        when = datetime(2025, 1, 1, tzinfo=UTC)
        try:
            raise ValueError("bad value")
        except ValueError as e:
            text = format_error_report(e, None, when)
        assert text.startswith("Error: ValueError\nMessage: bad value\nTime: 2025-01-01T00:00:00+00:00\n")
        assert "Category" not in text
        assert 'raise ValueError("bad value")' in text
