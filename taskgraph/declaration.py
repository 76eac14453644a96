"""
Declaration styles for building graphs from plain mappings.

`auto` graphs list dependencies explicitly, as `[*dependency_names, fn]`, and
dependent functions receive a `Results` accessor. `auto_inject` graphs infer
dependencies from the function's parameter names and receive each dependency as
a keyword argument.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from fast_depends import Depends

from .exceptions import InvalidDeclarationError
from .graph import Graph
from .task import COMPLETION, Task, _get_available_parameters

if TYPE_CHECKING:  # pragma: no cover
    from typing import Any

    from .task import TaskFn

# `Depends` is a factory, so compare against the type of marker it produces
_DEPENDS_MARKER = type(Depends(lambda: None))


def _is_dependant(annotation: "Any") -> bool:
    metadata = getattr(annotation, "__metadata__", None) or ()
    return any(isinstance(meta, _DEPENDS_MARKER) for meta in metadata)


def inferred_dependencies(fn: "TaskFn") -> tuple[str, ...]:
    """
    Dependency names of an `auto_inject` function: every parameter except
    `done`, variadics, defaulted parameters and `Depends` parameters.
    """
    return tuple(
        name
        for name, param in _get_available_parameters(fn).items()
        if name != COMPLETION
        and not param["variadic"]
        # optional also captures dependencies defined as `a = Depends(_a)`
        and not param["optional"]
        and not _is_dependant(param["annotation"])
    )


def _bind(task: Task, fn: "Callable[..., Any]") -> Task:
    try:
        return task(fn)
    except (TypeError, ValueError) as e:
        raise InvalidDeclarationError(task.name, str(e)) from e


def _named(name: str, task: Task) -> Task:
    if task.name != name:
        raise InvalidDeclarationError(
            name, f"it is declared as a task named '{task.name}'"
        )

    return task


def explicit_task(name: str, declaration: "Any") -> Task:
    if isinstance(declaration, Task):
        return _named(name, declaration)
    elif callable(declaration):
        return _bind(Task(name=name), declaration)
    elif (
        isinstance(declaration, Sequence)
        and not isinstance(declaration, str)
        and declaration
        and callable(declaration[-1])
    ):
        *dependencies, fn = declaration

        if not all(isinstance(dep, str) for dep in dependencies):
            raise InvalidDeclarationError(name, "dependency names must be strings")

        return _bind(Task(name=name, depends_on=tuple(dependencies)), fn)

    raise InvalidDeclarationError(
        name, "expected a callable or a list of dependency names ending in a callable"
    )


def injected_task(name: str, declaration: "Any") -> Task:
    if isinstance(declaration, Task):
        return _named(name, declaration)
    elif not callable(declaration):
        raise InvalidDeclarationError(name, "expected a callable")

    try:
        dependencies = inferred_dependencies(declaration)
    except (TypeError, ValueError) as e:
        raise InvalidDeclarationError(name, str(e)) from e

    return _bind(Task(name=name, depends_on=dependencies, injected=True), declaration)


def build_auto(tasks: Mapping[str, "Any"], escape: bool = True) -> Graph:
    """Build and resolve a graph with explicitly declared dependencies."""
    return Graph.from_tasks(
        *(explicit_task(name, declaration) for name, declaration in tasks.items()),
        escape=escape,
    ).resolve()


def build_auto_inject(tasks: Mapping[str, "Any"], escape: bool = True) -> Graph:
    """Build and resolve a graph whose dependencies come from parameter names."""
    return Graph.from_tasks(
        *(injected_task(name, declaration) for name, declaration in tasks.items()),
        escape=escape,
    ).resolve()
