"""
Per-invocation ambient values. Each run gets its own bindings and its own reply
handle; neither is ever cached on a graph or a handler.
"""

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from .exceptions import EscapeError

if TYPE_CHECKING:  # pragma: no cover
    from .graph import Graph

AMBIENT_NAMES: frozenset[str] = frozenset({"server", "request", "settings", "h"})
ESCAPE = "reply"

_UNSET = object()


class AmbientBindings(BaseModel):
    server: Any = None
    """Handle to the long-lived service instance."""

    request: Any = None
    """Handle to the current unit of work."""

    settings: Any = None
    """Read-only application configuration snapshot."""

    h: Any = None
    """Factory for boundary-specific responses."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)


class Reply:
    """
    The escape handle bound to `reply` when a graph has no `reply` task of its
    own. A task that calls it hands the run's response back directly; directives
    and result aggregation no longer apply.

    ```python
    async def respond(reply, user):
        return reply(reply.h.response(user).code(201))
    ```
    """

    def __init__(self, h: Any = None) -> None:
        self.h = h
        self._response: Any = _UNSET

    def __call__(self, response: Any) -> Any:
        if self.taken:
            raise EscapeError()

        self._response = response
        return response

    @property
    def taken(self) -> bool:
        return self._response is not _UNSET

    @property
    def response(self) -> Any:
        return None if self._response is _UNSET else self._response

    def __repr__(self) -> str:
        return f"Reply(taken={self.taken})"


def inject_context(graph: "Graph", bindings: AmbientBindings | None = None) -> "Graph":
    """
    Bind a resolved graph to this invocation's ambient values, returning a new
    graph with one pre-resolved task per ambient name.
    """
    if bindings is None:
        bindings = AmbientBindings()

    values: dict[str, Any] = {name: getattr(bindings, name) for name in AMBIENT_NAMES}

    escape: Reply | None = None
    if ESCAPE in graph.ambient:
        escape = Reply(bindings.h)
        values[ESCAPE] = escape

    return graph.bind(values, escape=escape)
