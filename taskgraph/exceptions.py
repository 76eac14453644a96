from http import HTTPStatus
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from typing import Any


class TaskgraphError(Exception):
    def __init__(self, *args: "Any", **kwargs: "Any") -> None:
        super().__init__(*args, **kwargs)


##
## GRAPH RESOLUTION
##


class UnresolvedGraphError(TaskgraphError):
    def __init__(self) -> None:
        super().__init__("Graphs must be resolved before they can be used.")


class GraphResolutionError(TaskgraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidDeclarationError(GraphResolutionError):
    def __init__(self, task_name: str, reason: str) -> None:
        self.task_name = task_name
        super().__init__(f"Task '{task_name}' is not a valid declaration: {reason}")


class ReservedTaskNameError(GraphResolutionError):
    def __init__(self, task_name: str) -> None:
        self.task_name = task_name
        super().__init__(
            f"'{task_name}' is reserved for an ambient binding and cannot be"
            " declared as a task."
        )


class UnresolvedDependencyError(GraphResolutionError):
    def __init__(self, task_name: str, missing: list[str]) -> None:
        self.task_name = task_name
        self.missing = missing
        super().__init__(
            f"Task '{task_name}' depends on undefined task(s): "
            + ", ".join(f"'{name}'" for name in missing)
        )


class CyclicGraphError(GraphResolutionError):
    def __init__(self, cycles: list[tuple[str, ...]]) -> None:
        self.cycles = cycles
        self.cycle = cycles[0]
        super().__init__(
            "Graphs cannot contain dependency cycles. Offending cycle: "
            + " -> ".join((*self.cycle, self.cycle[0]))
        )


##
## GRAPH EXECUTION
##


class TaskError(TaskgraphError):
    """
    A structured task failure. Raised as-is by the executor; the boundary maps
    `status_code` onto its own failure response.
    """

    def __init__(
        self, message: str = "", status_code: int = 500, data: "Any" = None
    ) -> None:
        self.status_code = int(status_code)
        self.data = data

        if not message:
            try:
                message = HTTPStatus(self.status_code).phrase
            except ValueError:
                message = "Unknown Error"

        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    @classmethod
    def bad_request(cls, message: str = "", data: "Any" = None) -> "TaskError":
        return cls(message, HTTPStatus.BAD_REQUEST, data)

    @classmethod
    def unauthorized(cls, message: str = "", data: "Any" = None) -> "TaskError":
        return cls(message, HTTPStatus.UNAUTHORIZED, data)

    @classmethod
    def forbidden(cls, message: str = "", data: "Any" = None) -> "TaskError":
        return cls(message, HTTPStatus.FORBIDDEN, data)

    @classmethod
    def not_found(cls, message: str = "", data: "Any" = None) -> "TaskError":
        return cls(message, HTTPStatus.NOT_FOUND, data)

    @classmethod
    def conflict(cls, message: str = "", data: "Any" = None) -> "TaskError":
        return cls(message, HTTPStatus.CONFLICT, data)


class InternalError(TaskError):
    def __init__(self, message: str = "", data: "Any" = None) -> None:
        super().__init__(message, HTTPStatus.INTERNAL_SERVER_ERROR, data)


class InvalidDirectiveError(InternalError):
    def __init__(self, directive: str, reason: str) -> None:
        self.directive = directive
        super().__init__(f"Result '{directive}' is not a valid directive: {reason}")


class TaskFailure(TaskgraphError):
    """Carries a failure value that is not an exception, as passed to `done`."""

    def __init__(self, task_name: str, reason: "Any") -> None:
        self.task_name = task_name
        self.reason = reason
        super().__init__(f"Task '{task_name}' failed with {reason!r}.")


class CompletionError(TaskgraphError):
    def __init__(self, task_name: str) -> None:
        super().__init__(f"Task '{task_name}' signalled completion more than once.")


class EscapeError(TaskgraphError):
    def __init__(self) -> None:
        super().__init__("The reply handle can only be used once per run.")


def normalize_error(error: "Any") -> TaskError:
    """
    Normalize a terminal failure into a `TaskError`. Structured errors pass
    through, strings become generic errors, anything else is internal.
    """
    if isinstance(error, TaskFailure):
        error = error.reason

    if isinstance(error, TaskError):
        return error
    elif isinstance(error, str):
        return TaskError(error)

    normalized = InternalError(str(error) if isinstance(error, Exception) else "")
    if isinstance(error, BaseException):
        normalized.__cause__ = error
    else:
        normalized.data = error

    return normalized


##
## WARNINGS
##


class EscapedFailureWarning(RuntimeWarning):
    """A task failed after the reply handle was used; the failure is not raised."""
