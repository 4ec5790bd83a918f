"""Plan generator: desired artifacts and the preserve-on-regenerate policy."""

from bootloader.plan.generator import PlanAction, PlanGenerator, PlanRequest, PlanResult

__all__ = ["PlanAction", "PlanGenerator", "PlanRequest", "PlanResult"]
