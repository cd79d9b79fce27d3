"""
Dependency-graph execution of resource operations.

Architectural Intent:
- Plan, apply, destroy and refresh all hand their per-address work to the
  orchestrator as steps keyed by address
- Independent addresses run concurrently, dependent ones wait

Scheduling:
- Each round starts every step whose dependencies have all succeeded
- A failed step poisons its dependents, and theirs in turn; they are
  reported as skipped while unrelated branches keep running
- Dependencies naming an address that is not part of this run count as
  already satisfied
- All failures are raised together once nothing else can run
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from typing import Callable, Awaitable, Any

from stratus.domain.errors import StratusError


StepFn = Callable[[dict[str, Any], dict[str, Any]], Awaitable[Any]]


@dataclass
class WorkflowStep:
    name: str
    execute: StepFn
    depends_on: list[str] = field(default_factory=list)
    is_critical: bool = True


class OrchestrationError(StratusError):
    """Raised when a run ends with failed steps or cannot be scheduled.

    ``completed`` holds the results of the steps that did succeed, so callers
    can still persist partial progress.
    """

    def __init__(
        self,
        message: str,
        failures: dict[str, BaseException] | None = None,
        skipped: list[str] | None = None,
        completed: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.failures = failures or {}
        self.skipped = skipped or []
        self.completed = completed or {}


class DAGOrchestrator:
    def __init__(self, steps: list[WorkflowStep]) -> None:
        self.steps: dict[str, WorkflowStep] = {s.name: s for s in steps}
        self._edges: dict[str, list[str]] = {
            s.name: [d for d in s.depends_on if d in self.steps] for s in steps
        }

    def _check_acyclic(self) -> None:
        remaining = {name: len(deps) for name, deps in self._edges.items()}
        dependents: dict[str, list[str]] = {name: [] for name in self._edges}
        for name, deps in self._edges.items():
            for dep in deps:
                dependents[dep].append(name)

        frontier = [name for name, count in remaining.items() if count == 0]
        while frontier:
            name = frontier.pop()
            for child in dependents[name]:
                remaining[child] -= 1
                if remaining[child] == 0:
                    frontier.append(child)

        stuck = sorted(name for name, count in remaining.items() if count > 0)
        if stuck:
            raise OrchestrationError(
                f"Circular dependency detected between: {', '.join(stuck)}"
            )

    def _poisoned(self, waiting: set[str], bad: set[str]) -> list[str]:
        poisoned: list[str] = []
        grew = True
        while grew:
            grew = False
            for name in sorted(waiting):
                if any(dep in bad for dep in self._edges[name]):
                    waiting.discard(name)
                    bad.add(name)
                    poisoned.append(name)
                    grew = True
        return poisoned

    async def execute(self, context: dict[str, Any]) -> dict[str, Any]:
        self._check_acyclic()

        completed: dict[str, Any] = {}
        failures: dict[str, BaseException] = {}
        skipped: list[str] = []
        waiting = set(self.steps)
        bad: set[str] = set()

        while waiting:
            skipped.extend(self._poisoned(waiting, bad))
            batch = sorted(
                name for name in waiting
                if all(dep in completed for dep in self._edges[name])
            )
            if not batch:
                break

            outcomes = await asyncio.gather(
                *(self.steps[name].execute(context, completed) for name in batch),
                return_exceptions=True,
            )
            for name, outcome in zip(batch, outcomes):
                waiting.discard(name)
                if isinstance(outcome, Exception) and self.steps[name].is_critical:
                    failures[name] = outcome
                    bad.add(name)
                else:
                    completed[name] = outcome

        if failures:
            raise OrchestrationError(
                f"Critical step(s) failed: {', '.join(sorted(failures))}",
                failures=failures,
                skipped=skipped,
                completed=completed,
            )
        return completed
