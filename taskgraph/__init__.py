from fast_depends import Depends

from .config import Config
from .context import AmbientBindings, Reply, inject_context
from .declaration import build_auto, build_auto_inject
from .exceptions import EscapedFailureWarning, InternalError, TaskError
from .executor import Executor
from .graph import Graph
from .handler import Handler, auto, auto_inject, run
from .outcome import EscapedResponse, Outcome, State, Value, synthesize
from .task import Results, Task

__all__ = [
    "AmbientBindings",
    "Config",
    "Depends",
    "EscapedFailureWarning",
    "EscapedResponse",
    "Executor",
    "Graph",
    "Handler",
    "InternalError",
    "Outcome",
    "Reply",
    "Results",
    "State",
    "Task",
    "TaskError",
    "Value",
    "auto",
    "auto_inject",
    "build_auto",
    "build_auto_inject",
    "inject_context",
    "run",
    "synthesize",
]
