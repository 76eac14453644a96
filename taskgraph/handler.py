from functools import partial
from typing import TYPE_CHECKING

import anyio
import sniffio

from .config import Config
from .context import AmbientBindings, inject_context
from .declaration import build_auto, build_auto_inject
from .executor import Executor
from .outcome import synthesize

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable, Mapping
    from typing import Any

    from .graph import Graph
    from .outcome import Outcome


async def run(
    graph: "Graph",
    bindings: AmbientBindings | None = None,
    config: Config | None = None,
) -> "Outcome":
    """
    Run a resolved graph once against this invocation's ambient bindings.
    Raises the normalized `TaskError` if the run failed.
    """
    if config is None:
        config = Config()

    bound = inject_context(graph, bindings)
    result = await Executor().execute(bound)

    return synthesize(result, ambient=bound.ambient, config=config)


class Handler:
    """
    A graph bound to a long-lived `server` handle and application `settings`,
    run once per request. Bindings and the reply handle are rebuilt on every
    call.

    Called inside an event loop, a Handler returns the awaitable from `handle`;
    called outside of one, it runs the graph to completion on the configured
    backend.
    """

    def __init__(
        self,
        graph: "Graph",
        *,
        server: "Any" = None,
        settings: "Any" = None,
        config: Config | None = None,
    ) -> None:
        self.graph = graph
        self.server = server
        self.settings = settings
        self.config = config or Config()

    async def handle(
        self, request: "Any" = None, h: "Any" = None, **ambient: "Any"
    ) -> "Outcome":
        bindings = AmbientBindings(
            **{
                "server": self.server,
                "settings": self.settings,
                "request": request,
                "h": h,
                **ambient,
            }
        )
        return await run(self.graph, bindings, self.config)

    def __call__(
        self, request: "Any" = None, h: "Any" = None, **ambient: "Any"
    ) -> "Awaitable[Outcome] | Outcome":
        try:
            sniffio.current_async_library()
            return self.handle(request, h, **ambient)
        except sniffio.AsyncLibraryNotFoundError:
            return anyio.run(
                partial(self.handle, request, h, **ambient),
                backend=self.config.async_backend,
            )


def auto(
    tasks: "Mapping[str, Any]",
    *,
    server: "Any" = None,
    settings: "Any" = None,
    **options: "Any",
) -> Handler:
    """
    Create a handler for a graph with explicit dependencies:

    ```python
    handler = auto(
        {
            "user": ["request", lambda results: load_user(results.request)],
            "reply": ["user", lambda results: {"name": results.user.name}],
        }
    )
    ```
    """
    config = Config(**options)
    return Handler(
        build_auto(tasks, escape=config.escape),
        server=server,
        settings=settings,
        config=config,
    )


def auto_inject(
    tasks: "Mapping[str, Any]",
    *,
    server: "Any" = None,
    settings: "Any" = None,
    **options: "Any",
) -> Handler:
    """Create a handler for a graph whose dependencies are parameter names."""
    config = Config(**options)
    return Handler(
        build_auto_inject(tasks, escape=config.escape),
        server=server,
        settings=settings,
        config=config,
    )
