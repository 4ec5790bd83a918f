"""Apply and teardown pipelines and their external collaborators."""

from bootloader.pipeline.apply import APPLY_STEPS, ApplyPipeline, ApplyResult
from bootloader.pipeline.director import BoshCli, DirectorClient
from bootloader.pipeline.steps import Step, run_steps
from bootloader.pipeline.teardown import TEARDOWN_STEPS, TeardownPipeline, TeardownResult
from bootloader.pipeline.terraform import InfraProvisioner, TerraformCli

__all__ = [
    "APPLY_STEPS",
    "TEARDOWN_STEPS",
    "ApplyPipeline",
    "ApplyResult",
    "BoshCli",
    "DirectorClient",
    "InfraProvisioner",
    "Step",
    "TeardownPipeline",
    "TeardownResult",
    "TerraformCli",
    "run_steps",
]
