"""Typer CLI entrypoint for bbl."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from bootloader.cli.rendering import CliRenderer
from bootloader.cloud_config import read_store_cloud_config
from bootloader.config import (
    BootloaderConfig,
    default_config_path,
    dump_config,
    dump_default_config,
    load_config,
)
from bootloader.endpoints import format_endpoints, resolve_endpoints
from bootloader.errors import BootloaderError, InvalidPhase, StoreUnwritable
from bootloader.pipeline.apply import ApplyPipeline
from bootloader.pipeline.teardown import TeardownPipeline
from bootloader.plan.generator import PlanGenerator, PlanRequest
from bootloader.store.artifacts import inspect_artifacts
from bootloader.store.lock import store_lock
from bootloader.store.state import (
    EnvironmentRecord,
    IaaS,
    LoadBalancerDeclaration,
    LoadBalancerType,
    Phase,
    load_state,
)

app = typer.Typer(
    name="bbl",
    help="Bootstrap and tear down a jumpbox and director from editable artifacts.",
    add_completion=False,
)
_CONSOLE = Console()
_RENDERER = CliRenderer(console=_CONSOLE)
_LOGGING_CONFIGURED = False

StateDirOption = Annotated[
    Path | None,
    typer.Option(
        "--state-dir",
        envvar="BBL_STATE_DIR",
        file_okay=False,
        dir_okay=True,
        help="Artifact Store directory. Defaults to the current directory.",
    ),
]
ConfigFileOption = Annotated[
    Path | None,
    typer.Option(
        "--config-file",
        file_okay=True,
        dir_okay=False,
        help="Path to bbl config YAML/JSON file. Defaults to <state-dir>/bbl.yml.",
    ),
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Enable debug logging.")
]
NameOption = Annotated[
    str | None, typer.Option("--name", help="Environment id (first plan only).")
]
IaasOption = Annotated[
    IaaS | None, typer.Option("--iaas", help="Infrastructure provider.")
]
RegionOption = Annotated[
    str | None, typer.Option("--region", help="Provider region.")
]
LbTypeOption = Annotated[
    LoadBalancerType | None,
    typer.Option("--lb-type", help="Load balancer type to provision."),
]
LbCertOption = Annotated[
    Path | None,
    typer.Option("--lb-cert", dir_okay=False, help="Load balancer certificate (PEM)."),
]
LbKeyOption = Annotated[
    Path | None,
    typer.Option("--lb-key", dir_okay=False, help="Load balancer private key (PEM)."),
]
LbDomainOption = Annotated[
    str | None, typer.Option("--lb-domain", help="Load balancer system domain.")
]


def _configure_logging(verbose: bool = False) -> None:
    """Configure Rich-backed logging once for CLI commands."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[
                RichHandler(
                    console=Console(stderr=True),
                    show_path=False,
                    rich_tracebacks=True,
                )
            ],
        )
        _LOGGING_CONFIGURED = True
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Render BootloaderError as an error panel and exit 1."""
    try:
        yield
    except BootloaderError as exc:
        _RENDERER.render_error(exc)
        raise typer.Exit(code=1) from exc


def _state_dir(state_dir: Path | None) -> Path:
    return state_dir if state_dir is not None else Path.cwd()


def _load_config(state_dir: Path, config_file: Path | None) -> BootloaderConfig:
    return load_config(config_file or default_config_path(state_dir))


def _require_record(state_dir: Path) -> EnvironmentRecord:
    record = load_state(state_dir)
    if record is None:
        raise InvalidPhase(f"no environment found in {state_dir}; run plan first")
    return record


def _lb_declarations(
    lb_type: LoadBalancerType | None,
    lb_cert: Path | None,
    lb_key: Path | None,
    lb_domain: str | None,
) -> list[LoadBalancerDeclaration] | None:
    if lb_type is None:
        if lb_cert or lb_key or lb_domain:
            raise typer.BadParameter("--lb-cert/--lb-key/--lb-domain need --lb-type")
        return None
    return [
        LoadBalancerDeclaration(
            type=lb_type,
            cert_path=str(lb_cert.resolve()) if lb_cert else None,
            key_path=str(lb_key.resolve()) if lb_key else None,
            domain=lb_domain,
        )
    ]


@app.command("plan")
def plan_command(  # noqa: PLR0913
    name: NameOption = None,
    iaas: IaasOption = None,
    region: RegionOption = None,
    lb_type: LbTypeOption = None,
    lb_cert: LbCertOption = None,
    lb_key: LbKeyOption = None,
    lb_domain: LbDomainOption = None,
    reset: Annotated[
        list[str] | None,
        typer.Option(
            "--reset",
            help="Regenerate this artifact even if it was edited. Repeatable.",
        ),
    ] = None,
    reset_all: Annotated[
        bool,
        typer.Option(
            "--reset-all",
            help="Regenerate every edited artifact except the vars stores.",
        ),
    ] = False,
    state_dir: StateDirOption = None,
    config_file: ConfigFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Write the artifact set into the state directory, keeping operator edits."""
    _configure_logging(verbose)
    effective_state_dir = _state_dir(state_dir)
    with _reported_errors():
        config = _load_config(effective_state_dir, config_file)
        request = PlanRequest(
            env_id=name,
            iaas=iaas,
            region=region,
            load_balancers=_lb_declarations(lb_type, lb_cert, lb_key, lb_domain),
            resets=frozenset(reset or ()),
            reset_all=reset_all,
        )
        with store_lock(effective_state_dir):
            result = PlanGenerator(effective_state_dir, config).plan(request)
    _RENDERER.render_plan(result)


@app.command("up")
def up_command(  # noqa: PLR0913
    name: NameOption = None,
    iaas: IaasOption = None,
    region: RegionOption = None,
    lb_type: LbTypeOption = None,
    lb_cert: LbCertOption = None,
    lb_key: LbKeyOption = None,
    lb_domain: LbDomainOption = None,
    state_dir: StateDirOption = None,
    config_file: ConfigFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Provision infrastructure, jumpbox and director from the artifacts on disk.

    Plans first when nothing has been planned yet or load balancer flags are
    given; otherwise runs the artifacts exactly as they are.
    """
    _configure_logging(verbose)
    effective_state_dir = _state_dir(state_dir)
    with _reported_errors():
        config = _load_config(effective_state_dir, config_file)
        declarations = _lb_declarations(lb_type, lb_cert, lb_key, lb_domain)
        with store_lock(effective_state_dir):
            record = load_state(effective_state_dir)
            needs_plan = (
                record is None
                or record.phase in (Phase.UNPLANNED, Phase.DESTROYED)
                or declarations is not None
            )
            if needs_plan:
                PlanGenerator(effective_state_dir, config).plan(
                    PlanRequest(
                        env_id=name,
                        iaas=iaas,
                        region=region,
                        load_balancers=declarations,
                    )
                )
            result = ApplyPipeline(effective_state_dir, config).run()
    _RENDERER.render_apply(result)


@app.command("down")
def down_command(
    state_dir: StateDirOption = None,
    config_file: ConfigFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Delete director, jumpbox and infrastructure using the artifacts on disk."""
    _configure_logging(verbose)
    effective_state_dir = _state_dir(state_dir)
    with _reported_errors():
        config = _load_config(effective_state_dir, config_file)
        with store_lock(effective_state_dir):
            result = TeardownPipeline(effective_state_dir, config).run()
    _RENDERER.render_teardown(result)


@app.command("lbs")
def lbs_command(
    state_dir: StateDirOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print the address of every declared load balancer."""
    _configure_logging(verbose)
    with _reported_errors():
        record = _require_record(_state_dir(state_dir))
        if not record.load_balancers:
            _CONSOLE.print("No load balancers declared.", style="yellow")
            return
        typer.echo(format_endpoints(resolve_endpoints(record)))


@app.command("cloud-config")
def cloud_config_command(
    state_dir: StateDirOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print the reconciled cloud config, or the planned base before up."""
    _configure_logging(verbose)
    effective_state_dir = _state_dir(state_dir)
    with _reported_errors():
        text = read_store_cloud_config(effective_state_dir)
        if text is None:
            raise InvalidPhase(
                f"no cloud config in {effective_state_dir}; run plan first"
            )
        typer.echo(text, nl=False)


@app.command("env-id")
def env_id_command(state_dir: StateDirOption = None) -> None:
    """Print the environment id."""
    _configure_logging()
    with _reported_errors():
        typer.echo(_require_record(_state_dir(state_dir)).env_id)


@app.command("jumpbox-address")
def jumpbox_address_command(state_dir: StateDirOption = None) -> None:
    """Print the jumpbox address."""
    _configure_logging()
    with _reported_errors():
        record = _require_record(_state_dir(state_dir))
        if not record.jumpbox.url:
            raise InvalidPhase("jumpbox address is not known yet; run up first")
        typer.echo(record.jumpbox.url)


@app.command("director-address")
def director_address_command(state_dir: StateDirOption = None) -> None:
    """Print the director address."""
    _configure_logging()
    with _reported_errors():
        record = _require_record(_state_dir(state_dir))
        if not record.director.address:
            raise InvalidPhase("director address is not known yet; run up first")
        typer.echo(record.director.address)


@app.command("artifacts")
def artifacts_command(state_dir: StateDirOption = None) -> None:
    """List artifacts with their ownership and whether they were edited."""
    _configure_logging()
    effective_state_dir = _state_dir(state_dir)
    with _reported_errors():
        record = _require_record(effective_state_dir)
        statuses = inspect_artifacts(effective_state_dir, record.artifacts)
    _RENDERER.render_artifacts(statuses)


@app.command("config")
def config_command(
    write_default: Annotated[
        bool,
        typer.Option(
            "--write-default",
            help="Write the default config to the config path if it is absent.",
        ),
    ] = False,
    overwrite: Annotated[
        bool,
        typer.Option(
            "--overwrite", help="With --write-default, replace an existing file."
        ),
    ] = False,
    state_dir: StateDirOption = None,
    config_file: ConfigFileOption = None,
) -> None:
    """Show the effective config, or write the default one."""
    _configure_logging()
    effective_state_dir = _state_dir(state_dir)
    path = config_file or default_config_path(effective_state_dir)
    with _reported_errors():
        if write_default:
            if path.exists() and not overwrite:
                _CONSOLE.print(f"Config already exists: {path}", style="yellow")
                return
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(dump_default_config(), encoding="utf-8")
            except OSError as exc:
                raise StoreUnwritable(f"Cannot write config {path}: {exc}") from exc
            _CONSOLE.print(f"Wrote default config to {path}", style="green")
            return
        config = load_config(path)
        typer.echo(dump_config(config), nl=False)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
