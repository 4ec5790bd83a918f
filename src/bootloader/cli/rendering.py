"""Rich views for plan, up, down and error results."""

from __future__ import annotations

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bootloader.errors import BootloaderError, StepExecutionFailed
from bootloader.pipeline.apply import ApplyResult
from bootloader.pipeline.teardown import TeardownResult
from bootloader.plan.generator import PlanAction, PlanResult
from bootloader.store.artifacts import ArtifactOwner, ArtifactStatus

_ACTION_STYLES = {
    PlanAction.CREATED: "green",
    PlanAction.REGENERATED: "cyan",
    PlanAction.UNCHANGED: "dim",
    PlanAction.PRESERVED: "yellow",
    PlanAction.RESET: "magenta",
}


class CliRenderer:
    """Render pipeline results with Rich structures."""

    def __init__(self, *, console: Console) -> None:
        self._console = console

    def render_plan(self, result: PlanResult) -> None:
        record = result.record
        table = Table(title="Artifacts", show_header=True, header_style="bold cyan")
        table.add_column("Artifact", style="bold")
        table.add_column("Path")
        table.add_column("Action")
        for name, action in result.actions.items():
            artifact = record.artifacts.get(name)
            table.add_row(
                name,
                artifact.rel_path if artifact is not None else "",
                Text(action.value, style=_ACTION_STYLES[action]),
            )
        self._console.print(table)
        lbs = ", ".join(lb.value for lb in record.lb_types()) or "none"
        self._console.print(
            Panel(
                Text(
                    f"Environment: {record.env_id}\n"
                    f"IaaS: {record.iaas} ({record.region})\n"
                    f"Load balancers: {lbs}\n"
                    f"Phase: {record.phase}"
                ),
                title="Planned",
                border_style="green",
                expand=True,
            )
        )

    def render_apply(self, result: ApplyResult) -> None:
        record = result.record
        lines = [
            f"Environment: {record.env_id}",
            f"Jumpbox: {record.jumpbox.url or 'unknown'}",
            f"Director: {record.director.address or 'unknown'}",
        ]
        if result.reconciliation is not None:
            names = ", ".join(result.reconciliation.extension_names) or "none"
            lines.append(f"Cloud config extensions: {names}")
        lines.extend(f"{ep.label}: {ep.address}" for ep in result.endpoints)
        self._console.print(
            Panel(Text("\n".join(lines)), title="Up", border_style="green", expand=True)
        )
        for warning in result.warnings:
            self._console.print(
                Panel(Text(warning), title="Warning", border_style="yellow", expand=True)
            )

    def render_teardown(self, result: TeardownResult) -> None:
        lines = [f"Environment: {result.record.env_id}", f"State: {result.retention}"]
        if result.archive_dir is not None:
            lines.append(f"Archived to: {result.archive_dir}")
        self._console.print(
            Panel(
                Text("\n".join(lines)),
                title="Destroyed",
                border_style="green",
                expand=True,
            )
        )

    def render_artifacts(self, statuses: list[ArtifactStatus]) -> None:
        table = Table(title="Artifacts", show_header=True, header_style="bold cyan")
        table.add_column("Artifact", style="bold")
        table.add_column("Kind")
        table.add_column("Path")
        table.add_column("Owner")
        table.add_column("Touched")
        for status in statuses:
            owner_style = "yellow" if status.owner == ArtifactOwner.USER else "green"
            table.add_row(
                status.name,
                status.kind.value,
                status.rel_path if status.exists else f"{status.rel_path} (missing)",
                Text(status.owner.value, style=owner_style),
                "yes" if status.touched else "",
            )
        self._console.print(table)

    def render_error(self, exc: BootloaderError) -> None:
        """Render a failure with its code and any captured process output."""
        self._console.print(
            Panel(
                Text(str(exc)),
                title=Text(f"Error [{exc.code}]"),
                border_style="bold red",
                expand=True,
            )
        )
        if isinstance(exc, StepExecutionFailed):
            for title, output in (("stdout", exc.stdout), ("stderr", exc.stderr)):
                if output:
                    self._console.print(
                        Panel(Text(output), title=title, border_style="red", expand=True)
                    )
        if exc.data:
            self._console.print(
                Panel(
                    JSON.from_data(exc.data, default=str),
                    title="Data",
                    border_style="cyan",
                    expand=True,
                )
            )
