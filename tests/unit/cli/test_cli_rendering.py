"""Unit tests for Rich views of bbl results."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from bootloader.cli.rendering import CliRenderer
from bootloader.errors import InvalidDeclaration, StepExecutionFailed


def _renderer() -> tuple[CliRenderer, io.StringIO]:
    buffer = io.StringIO()
    console = Console(file=buffer, width=120, color_system=None)
    return CliRenderer(console=console), buffer


@pytest.mark.unit
def test_error_panel_title_shows_error_code() -> None:
    """The bracketed code is printed literally, not read as markup."""
    renderer, buffer = _renderer()

    renderer.render_error(InvalidDeclaration("--iaas is required for the first plan"))

    output = buffer.getvalue()
    assert "Error [invalid_declaration]" in output
    assert "--iaas is required for the first plan" in output


@pytest.mark.unit
def test_step_failure_shows_process_output_verbatim() -> None:
    renderer, buffer = _renderer()

    renderer.render_error(
        StepExecutionFailed(
            "create_director",
            "exit code 7",
            returncode=7,
            stdout="[bold]not markup[/bold]",
            stderr="cannot reach director",
        )
    )

    output = buffer.getvalue()
    assert "Error [step_execution_failed]" in output
    assert "[bold]not markup[/bold]" in output
    assert "cannot reach director" in output
    assert '"returncode": 7' in output
