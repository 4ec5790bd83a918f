"""Shared fixtures/helpers for end-to-end CLI tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch
from typer.testing import CliRunner

from bootloader.cli import cli
from bootloader.pipeline.apply import ApplyPipeline
from bootloader.pipeline.teardown import TeardownPipeline


@dataclass
class BblEnv:
    """Isolated state directory, CLI runner and order log for scripts."""

    state_dir: Path
    order_log: Path
    runner: CliRunner
    provisioner: object
    director: object
    invocations: list[list[str]] = field(default_factory=list)

    def bbl(self, *args: str) -> object:
        """Invoke `bbl <args> --state-dir <state_dir>`."""
        argv = [*args, "--state-dir", str(self.state_dir)]
        self.invocations.append(argv)
        return self.runner.invoke(cli.app, argv)

    def replace_script(self, rel_path: str, marker: str, body: str = "") -> None:
        """Overwrite a planned script with one that records marker."""
        (self.state_dir / rel_path).write_text(
            f"#!/bin/bash\nset -eu\necho {marker} >> {self.order_log}\n{body}",
            encoding="utf-8",
        )

    def use_noop_bosh(self) -> None:
        """Point generated scripts at `true` instead of a real bosh binary."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        (self.state_dir / "bbl.yml").write_text(
            "binaries:\n  bosh: \"true\"\n", encoding="utf-8"
        )

    def order(self) -> str:
        if not self.order_log.exists():
            return ""
        return self.order_log.read_text(encoding="utf-8")


@pytest.fixture
def bbl_env(
    tmp_path: Path, monkeypatch: MonkeyPatch, provisioner, director
) -> BblEnv:
    """CLI environment whose pipelines talk to in-process fakes."""

    def apply_pipeline(state_dir: Path, config) -> ApplyPipeline:
        return ApplyPipeline(
            state_dir, config, provisioner=provisioner, director=director
        )

    def teardown_pipeline(state_dir: Path, config) -> TeardownPipeline:
        return TeardownPipeline(state_dir, config, provisioner=provisioner)

    monkeypatch.setattr(cli, "ApplyPipeline", apply_pipeline)
    monkeypatch.setattr(cli, "TeardownPipeline", teardown_pipeline)
    state_dir = tmp_path / "env"
    return BblEnv(
        state_dir=state_dir,
        order_log=tmp_path / "order.log",
        runner=CliRunner(),
        provisioner=provisioner,
        director=director,
    )
