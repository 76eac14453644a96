from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TASKGRAPH_")

    escape: bool = True
    """Bind the `reply` escape handle when a graph does not declare a `reply` task."""

    omit_empty_results: bool = True
    """Drop tasks that completed without a value from aggregated payloads."""

    stripped_results: frozenset[str] = frozenset(
        {"server", "request", "h", "reply"}
    )
    """Result names never returned in an aggregated payload."""

    async_backend: Literal["asyncio", "trio"] = "asyncio"
    """ Backend used when a handler is called outside of an event loop."""
