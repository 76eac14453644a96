"""
Graph module for the taskgraph framework.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

import networkx as nx

from .context import AMBIENT_NAMES, ESCAPE
from .exceptions import (
    CyclicGraphError,
    InvalidDeclarationError,
    ReservedTaskNameError,
    UnresolvedDependencyError,
    UnresolvedGraphError,
)
from .task import Task
from .topology import Topology

if TYPE_CHECKING:  # pragma: no cover
    from typing import Any

    from .context import Reply


class Graph:
    def __init__(
        self,
        tasks: Mapping[str, Task],
        ambient: frozenset[str] = frozenset(),
        bindings: "Mapping[str, Any] | None" = None,
        escape: "Reply | None" = None,
    ) -> None:
        self.tasks: Mapping[str, Task] = MappingProxyType(dict(tasks))
        self.ambient = frozenset(ambient)
        self.bindings: "Mapping[str, Any]" = MappingProxyType(dict(bindings or {}))
        self.escape = escape
        self._topology: Topology | None = None

    @classmethod
    def from_tasks(cls, *tasks: Task, escape: bool = True) -> "Graph":
        by_name: dict[str, Task] = {}

        for task in tasks:
            if task.name in by_name:
                raise InvalidDeclarationError(task.name, "declared more than once")

            by_name[task.name] = task

        ambient = AMBIENT_NAMES
        if escape and ESCAPE not in by_name:
            ambient = ambient | {ESCAPE}

        return cls(by_name, ambient=ambient)

    def resolve(self) -> "Graph":
        known = self.tasks.keys() | self.ambient

        for task in self.tasks.values():
            if task.name in self.ambient and not task.ambient:
                raise ReservedTaskNameError(task.name)
            elif task.ambient and task.name not in self.ambient:
                raise InvalidDeclarationError(task.name, "no function is bound to it")

            if missing := [dep for dep in task.depends_on if dep not in known]:
                raise UnresolvedDependencyError(task.name, missing)

        # edges point from a dependency to the task that consumes it
        digraph = nx.DiGraph()
        digraph.add_nodes_from(sorted(known))

        for task in self.tasks.values():
            for dep in task.depends_on:
                digraph.add_edge(dep, task.name)

        try:
            order = list(nx.topological_sort(digraph))
        except nx.NetworkXUnfeasible as e:
            # shortest cycles first so the reported one is the easiest to read
            cycles = sorted(
                (tuple(cycle) for cycle in nx.simple_cycles(digraph)), key=len
            )
            raise CyclicGraphError(cycles) from e

        self._topology = Topology(digraph=digraph, order=order)

        return self

    def bind(
        self, bindings: "Mapping[str, Any]", escape: "Reply | None" = None
    ) -> "Graph":
        """
        Create a resolved copy of this graph where every ambient name is a
        task resolved to its bound value.
        """
        if not self.resolved:
            raise UnresolvedGraphError()

        ambient_tasks = {name: Task(name=name) for name in self.ambient}

        return Graph(
            {**self.tasks, **ambient_tasks},
            ambient=self.ambient,
            bindings={name: bindings.get(name) for name in self.ambient},
            escape=escape,
        ).resolve()

    @property
    def resolved(self) -> bool:
        return self._topology is not None

    @property
    def topology(self) -> Topology:
        if not self.resolved:
            raise UnresolvedGraphError()

        return self._topology

    def __contains__(self, name: object) -> bool:
        return name in self.tasks

    def __len__(self) -> int:
        return len(self.tasks)

    def __repr__(self) -> str:
        return f"Graph(tasks={sorted(self.tasks)!r}, resolved={self.resolved})"
