"""
Saga runner for multi-step operations.

A saga is an ordered list of forward steps, each optionally paired with a
compensation that undoes it.  When a step fails, the compensations of the
steps that already completed run in reverse order and the error propagates:
application errors unchanged, anything else wrapped in ``SagaFailed``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from fleetops.errors import AppException, SagaFailed

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensation: Optional[Action] = None


class Saga:
    def __init__(self, name: str):
        self.name = name
        self.steps: list[SagaStep] = []
        self.completed: list[SagaStep] = []

    def step(
        self, name: str, action: Action, compensation: Optional[Action] = None
    ) -> "Saga":
        self.steps.append(SagaStep(name, action, compensation))
        return self

    async def run(self) -> list[Any]:
        results = []
        for step in self.steps:
            try:
                results.append(await step.action())
            except AppException:
                await self.compensate(step.name)
                raise
            except Exception as exc:
                await self.compensate(step.name)
                raise SagaFailed(self.name, step.name, exc) from exc
            self.completed.append(step)
        logger.info("Saga %s completed %d steps", self.name, len(self.completed))
        return results

    async def compensate(self, failed_step: str) -> None:
        logger.warning(
            "Saga %s failed at %s, compensating %d steps",
            self.name,
            failed_step,
            len(self.completed),
        )
        for step in reversed(self.completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
            except Exception:
                logger.exception(
                    "Compensation for %s in saga %s failed", step.name, self.name
                )
        self.completed.clear()
