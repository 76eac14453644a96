import logging
import warnings
from typing import TYPE_CHECKING

import anyio

from .context import inject_context
from .exceptions import EscapedFailureWarning, UnresolvedGraphError, normalize_error
from .execution_plan import ExecutionPlan
from .outcome import EscapedResponse
from .task import TaskRunner

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping
    from typing import Any

    from anyio.abc import TaskGroup

    from .graph import Graph

logger = logging.getLogger(__name__)


class Executor:
    """
    An Executor for running bound Graphs locally. Every task is started in a
    task group as soon as its last dependency completes, so independent tasks
    run concurrently and dependent ones wait.

    The first failure halts scheduling: tasks already running are left to
    finish, their results are discarded, and the failure is raised once
    normalized. A failure after the graph's reply handle was used is only
    reported as an `EscapedFailureWarning`.
    """

    async def execute(self, graph: "Graph") -> "Mapping[str, Any] | EscapedResponse":
        if not graph.resolved:
            raise UnresolvedGraphError()
        elif not graph.ambient.issubset(graph.tasks):
            # not bound to an invocation yet, so bind empty ambient values
            graph = inject_context(graph)

        plan = ExecutionPlan.from_graph(graph)

        async with anyio.create_task_group() as tg:
            self.dispatch(tg, graph, plan)

        if plan.failure is not None:
            raise normalize_error(plan.failure)
        elif graph.escape is not None and graph.escape.taken:
            return EscapedResponse(graph.escape.response)

        return plan.result_map()

    def dispatch(self, tg: "TaskGroup", graph: "Graph", plan: ExecutionPlan) -> None:
        for name in plan.proceed():
            logger.debug("Starting task '%s' (run %s).", name, plan.uuid)
            tg.start_soon(
                self._run_task,
                tg,
                graph,
                plan,
                TaskRunner(graph.tasks[name]),
                name=f"{plan.uuid}:{name}",
            )

    async def _run_task(
        self, tg: "TaskGroup", graph: "Graph", plan: ExecutionPlan, runner: TaskRunner
    ) -> None:
        name = runner.task.name

        try:
            value = await runner.run(plan.results)
        except Exception as e:
            self._fail(graph, plan, name, e)
            return

        if plan.halted:
            logger.debug("Discarding result of task '%s' from a halted run.", name)
            return

        logger.debug("Task '%s' completed (run %s).", name, plan.uuid)
        plan.complete(name, value)
        self.dispatch(tg, graph, plan)

    def _fail(
        self, graph: "Graph", plan: ExecutionPlan, name: str, error: Exception
    ) -> None:
        if plan.failure is not None:
            logger.debug(
                "Discarding failure of task '%s' from a failed run.",
                name,
                exc_info=error,
            )
        elif graph.escape is not None and graph.escape.taken:
            warnings.warn(
                f"Task '{name}' failed after the reply handle was used: {error!r}",
                EscapedFailureWarning,
                stacklevel=2,
            )
            plan.halt()
        else:
            logger.debug("Task '%s' failed (run %s).", name, plan.uuid, exc_info=error)
            plan.fail(error)
