from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:  # pragma: no cover
    from .graph import Graph


class ExecutionPlan(BaseModel):
    """
    Mutable state of a single run: which dependencies each task still waits
    on, which tasks are ready to start, and the results recorded so far.
    """

    uuid: UUID = Field(default_factory=uuid4)
    waiting: dict[str, set[str]]
    dependents: dict[str, set[str]]
    ready: list[str] = Field(default_factory=list)
    started: set[str] = Field(default_factory=set)
    results: dict[str, Any] = Field(default_factory=dict)
    failure: Any = None
    halted: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_graph(cls, graph: "Graph") -> "ExecutionPlan":
        plan = cls(
            waiting={name: set(task.depends_on) for name, task in graph.tasks.items()},
            dependents={
                name: graph.topology.dependents(name) for name in graph.tasks
            },
        )
        plan.ready = [
            name
            for name, task in graph.tasks.items()
            if not task.depends_on and not task.ambient
        ]

        # ambient tasks resolve immediately to their bound values
        for name, value in graph.bindings.items():
            plan.started.add(name)
            plan.complete(name, value)

        return plan

    def proceed(self) -> list[str]:
        """Claim every task whose dependencies have all completed."""
        if self.halted:
            return []

        ready, self.ready = self.ready, []
        self.started.update(ready)
        return ready

    def complete(self, name: str, value: Any) -> None:
        if name in self.results:
            raise ValueError(f"Task '{name}' already has a recorded result.")

        self.results[name] = value

        for dependent in self.dependents.get(name, ()):
            unmet = self.waiting[dependent]
            unmet.discard(name)

            if not unmet and dependent not in self.started:
                self.ready.append(dependent)

    def fail(self, error: Any) -> None:
        if self.failure is None:
            self.failure = error

        self.halt()

    def halt(self) -> None:
        self.halted = True
        self.ready.clear()

    @property
    def finished(self) -> bool:
        return len(self.results) == len(self.waiting)

    def result_map(self) -> Mapping[str, Any]:
        """A frozen copy of the results."""
        return MappingProxyType(dict(self.results))
