from __future__ import annotations

from typing import Iterator

import pytest
from prompt_toolkit.input import PipeInput, create_pipe_input  # type: ignore
from prompt_toolkit.output import DummyOutput  # type: ignore

from gline.config import EditorOptions
from gline.host import edit_line
from gline.session import Outcome

OPTIONS = EditorOptions(resource_update_interval=0, debounce_delay=0)


@pytest.fixture
def pipe() -> Iterator[PipeInput]:
    with create_pipe_input() as pipe_input:
        yield pipe_input


@pytest.mark.asyncio
async def test_edit_line_commits_typed_command(pipe: PipeInput) -> None:
    pipe.send_text("ls -la\r")
    result = await edit_line("$ ", options=OPTIONS, input=pipe, output=DummyOutput())

    assert result.text == "ls -la"
    assert result.prompt == "$ "
    assert result.outcome is Outcome.COMMAND


@pytest.mark.asyncio
async def test_edit_line_assembles_multiline_command(pipe: PipeInput) -> None:
    pipe.send_text("if true; then\recho yes\rfi\r")
    result = await edit_line("$ ", options=OPTIONS, input=pipe, output=DummyOutput())

    assert result.text == "if true; then\necho yes\nfi"


@pytest.mark.asyncio
async def test_edit_line_reports_interrupt(pipe: PipeInput) -> None:
    pipe.send_text("rm -rf build\x03")
    result = await edit_line("$ ", options=OPTIONS, input=pipe, output=DummyOutput())

    assert result.interrupted
    assert result.text == ""


@pytest.mark.asyncio
async def test_edit_line_end_of_input(pipe: PipeInput) -> None:
    pipe.send_text("\x04")
    result = await edit_line("$ ", options=OPTIONS, input=pipe, output=DummyOutput())

    assert result.end_of_input


@pytest.mark.asyncio
async def test_edit_line_recalls_history(pipe: PipeInput) -> None:
    pipe.send_text("\x10\r")
    result = await edit_line("$ ", ["make test", "ls"], options=OPTIONS, input=pipe, output=DummyOutput())

    assert result.text == "make test"



@pytest.mark.asyncio
async def test_edit_line_meta_keys_edit_words(pipe: PipeInput) -> None:
    # Ctrl+A, Alt+F, Alt+D, then Ctrl+E, Ctrl+Y.
    pipe.send_text("echo one two\x01\x1bf\x1bd\x05\x19\r")
    result = await edit_line("$ ", options=OPTIONS, input=pipe, output=DummyOutput())

    assert result.text == "echo two one"
