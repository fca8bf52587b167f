"""Dependency tracking engine: the heart of tracked.

The Executor keeps a LIFO stack of running reactions. While a reaction is on
top of the stack, every attribute read funneled through a Registry
subscribes that reaction to the (registry, property) pair, building the
dependency graph automatically. A write from the same reaction removes the
edge again, so a reaction that reads and writes a property never
re-triggers itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Hashable

if TYPE_CHECKING:
    from tracked.reaction import Reaction
    from tracked.registry import Registry
    from tracked.scheduler import Scheduler

logger = logging.getLogger("tracked.tracking")


@dataclass(frozen=True)
class ExecutionResult:
    """What one execution of a reaction produced."""

    reaction: Reaction
    result: Any
    edges: frozenset[tuple[Registry, Hashable]]
    # Registries read during the run; only collected for debug reactions.
    read: frozenset[Registry] | None = None

    def dispose(self) -> None:
        self.reaction.dispose()


class Executor:
    """Runs reactions and records what they read."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._stack: list[Reaction] = []

    @property
    def current(self) -> Reaction | None:
        """The innermost running reaction, if any."""
        return self._stack[-1] if self._stack else None

    @property
    def depth(self) -> int:
        return len(self._stack)

    def report(self, registry: Registry, prop: Hashable, write: bool = False) -> None:
        """Record an attribute access by the innermost running reaction."""
        if not self._stack:
            return
        if not self._scheduler.tracking or prop in registry.ignore:
            return
        reaction = self._stack[-1]
        # Disposed mid-run: later reads must not bring edges back.
        if reaction.disposed:
            return
        if write:
            registry.unsubscribe(prop, reaction)
            return
        registry.subscribe(prop, reaction)

    def execute(self, reaction: Reaction, *args: Any) -> ExecutionResult:
        """Run reaction with fresh dependency edges.

        Exceptions from reaction.run() propagate unchanged; the stack and the
        active flag are restored first.
        """
        reaction.active = True
        self._unsubscribe(reaction)
        if reaction.debug:
            reaction.read = set()
        reaction.seen = self._scheduler.version
        self._stack.append(reaction)
        try:
            result = reaction.run(*args)
        finally:
            self._stack.pop()
            reaction.active = False

        read = None
        if reaction.debug:
            read = frozenset(reaction.read)
            logger.info("[%s] ran. Read: %s", reaction.name, _describe(reaction))
        return ExecutionResult(reaction, result, frozenset(reaction.edges), read)

    def dispose(self, reaction: Reaction) -> None:
        """Drop every edge of reaction and stop it from being notified again."""
        reaction.disposed = True
        self._unsubscribe(reaction)

    def _unsubscribe(self, reaction: Reaction) -> None:
        for registry, prop in list(reaction.edges):
            registry.unsubscribe(prop, reaction)
        reaction.edges.clear()


def _describe(reaction: Reaction) -> dict[str, list]:
    """Group a reaction's edges by registry owner, for debug logging."""
    read: dict[str, list] = {}
    for registry, prop in reaction.edges:
        read.setdefault(registry.owner or repr(registry), []).append(prop)
    return read
