from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .config import Config
from .exceptions import InvalidDirectiveError

REPLY = "reply"
REDIRECT = "redirect"
SET_STATE = "setState"
SET_HEADERS = "setHeaders"

DIRECTIVES: frozenset[str] = frozenset({REDIRECT, SET_STATE, SET_HEADERS})

_HEADERS = TypeAdapter(dict[str, str])


class State(BaseModel):
    """A cookie the boundary should set on the response."""

    name: str = Field(min_length=1)
    data: Any = None

    model_config = ConfigDict(frozen=True, from_attributes=True)


@dataclass(frozen=True, slots=True)
class Value:
    value: Any
    redirect: str | None = None
    """Location for a temporary redirect."""
    state: State | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EscapedResponse:
    """A response produced through the reply handle, passed on verbatim."""

    response: Any


Outcome = Value | EscapedResponse


def _redirect(target: Any) -> str | None:
    if not target:
        return None
    elif not isinstance(target, str):
        raise InvalidDirectiveError(REDIRECT, "expected a location string")

    return target


def _state(state: Any) -> State | None:
    if not state:
        return None

    try:
        return State.model_validate(state)
    except ValidationError as e:
        raise InvalidDirectiveError(SET_STATE, str(e)) from e


def _headers(headers: Any) -> dict[str, str]:
    if not headers:
        return {}

    try:
        return _HEADERS.validate_python(headers)
    except ValidationError as e:
        raise InvalidDirectiveError(SET_HEADERS, str(e)) from e


def synthesize(
    results: "Mapping[str, Any] | EscapedResponse",
    *,
    ambient: frozenset[str] = frozenset(),
    config: Config | None = None,
) -> Outcome:
    """
    Turn a run's results into an Outcome. A user-declared `reply` result is the
    value; otherwise the value is every remaining result, without directives
    or the configured stripped names. Directives apply in both cases.
    """
    if isinstance(results, EscapedResponse):
        return results

    if config is None:
        config = Config()

    if REPLY in results and REPLY not in ambient:
        value = results[REPLY]
    else:
        hidden = config.stripped_results | DIRECTIVES
        value = {
            name: result
            for name, result in results.items()
            if name not in hidden
            and not (config.omit_empty_results and result is None)
        }

    return Value(
        value,
        redirect=_redirect(results.get(REDIRECT)),
        state=_state(results.get(SET_STATE)),
        headers=_headers(results.get(SET_HEADERS)),
    )
