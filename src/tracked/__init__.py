"""tracked: fine-grained reactive state for Python objects."""

from importlib.metadata import version as _version

__version__ = _version("tracked")

from tracked.errors import MisuseError, TrackedError
from tracked.equal import deep_equal
from tracked.scheduler import Scheduler, get_scheduler, immediately, set_scheduler, tick, use_scheduler
from tracked._tracking import ExecutionResult
from tracked.registry import Registry, get_registry
from tracked.reaction import Reaction, autorun, dispose, listen, reaction, subscribe, untracked
from tracked.computed import Computed, DerivedValue, computed
from tracked.action import action, transaction
from tracked.structures import ObservableDict, ObservableList, ObservableSet
from tracked.observable import Cell, Observable, ObservableObject, make_observable
# textual is opt-in and not imported here

__all__ = [
    "Observable",
    "ObservableObject",
    "make_observable",
    "Cell",
    "ObservableList",
    "ObservableDict",
    "ObservableSet",
    "Computed",
    "DerivedValue",
    "computed",
    "Reaction",
    "autorun",
    "reaction",
    "subscribe",
    "listen",
    "untracked",
    "dispose",
    "action",
    "transaction",
    "Registry",
    "get_registry",
    "ExecutionResult",
    "Scheduler",
    "get_scheduler",
    "set_scheduler",
    "use_scheduler",
    "tick",
    "immediately",
    "deep_equal",
    "TrackedError",
    "MisuseError",
]
