import inspect
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import anyio
from fast_depends import inject
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import CompletionError, TaskFailure

if TYPE_CHECKING:  # pragma: no cover
    TaskFn = Callable[..., Any]

COMPLETION = "done"
"""Reserved parameter name for callback-style completion."""


class Task(BaseModel):
    name: str = Field(min_length=1)
    depends_on: tuple[str, ...] = ()
    injected: bool = False
    callback: bool = False
    fn: Callable[..., Any] | None = Field(default=None, repr=False)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("depends_on")
    @classmethod
    def _unique_dependencies(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    @property
    def ambient(self) -> bool:
        """Ambient tasks are resolved from bindings and never invoked."""
        return self.fn is None

    def __call__(self, fn: "TaskFn") -> "Task":
        return self.model_copy(update={"fn": fn, "callback": takes_completion(fn)})


class Results(Mapping[str, Any]):
    """
    Read-only view over a task's dependency results. Values are available both
    as items and as attributes, so `results["user"]` and `results.user` match.
    """

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(name) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Results({dict(self._values)!r})"


class Completion:
    """
    The `done` handle given to callback-style tasks. Call it once, either with
    an error or with `(None, value)`.
    """

    def __init__(self, task_name: str) -> None:
        self.task_name = task_name
        self._event = anyio.Event()
        self._error: Any = None
        self._value: Any = None

    def __call__(self, error: Any = None, value: Any = None) -> None:
        if self._event.is_set():
            raise CompletionError(self.task_name)

        self._error = error
        self._value = value
        self._event.set()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> Any:
        await self._event.wait()

        if self._error is None:
            return self._value
        elif isinstance(self._error, Exception):
            raise self._error

        raise TaskFailure(self.task_name, self._error)


@lru_cache(maxsize=1024)
def _get_available_parameters(fn: "TaskFn") -> dict[str, dict[str, Any]]:
    parameters = inspect.signature(fn).parameters.values()
    return {
        param.name: {
            "annotation": param.annotation,
            "optional": param.default is not inspect.Parameter.empty,
            "variadic": param.kind
            in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD),
        }
        for param in parameters
        if param.name != "self"
    }


def takes_completion(fn: "TaskFn") -> bool:
    return COMPLETION in _get_available_parameters(fn)


@lru_cache(maxsize=1024)
def _get_resolved_fn(fn: "TaskFn") -> "TaskFn":
    return inject(fn)


@dataclass
class TaskRunner:
    task: Task

    def __post_init__(self) -> None:
        self.__name__ = self.task.name

    def _prepare_arguments(
        self, results: Mapping[str, Any]
    ) -> tuple[tuple[Any, ...], dict[str, Any]]:
        dependencies = {name: results[name] for name in self.task.depends_on}

        if self.task.injected:
            return (), dependencies
        elif dependencies:
            return (Results(dependencies),), {}

        return (), {}

    async def run(self, results: Mapping[str, Any]) -> Any:
        """Invoke the task once and return its value, raising on failure."""
        args, kwargs = self._prepare_arguments(results)
        task_fn: "TaskFn" = _get_resolved_fn(self.task.fn)

        if not self.task.callback:
            value = task_fn(*args, **kwargs)
            if inspect.isawaitable(value):
                value = await value

            return value

        done = Completion(self.task.name)
        returned = task_fn(*args, **{COMPLETION: done}, **kwargs)
        if inspect.isawaitable(returned):
            await returned

        return await done.wait()
