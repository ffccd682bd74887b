"""Name resolution chain.

An ordered pipeline of resolver steps that may rewrite a requested logical
storage name before the manager looks it up. Every rewrite is recorded as
a Revision, so a later step can see which step produced the current name
and what it replaced.

Steps continue by default. A step halts the walk with
``discovery.stop()`` (or ``discovery.set_name(name, stop=True)``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional

logger = logging.getLogger(__name__)

__all__ = [
    "NameDiscovery",
    "NameResolver",
    "NameResolverChain",
    "ResolverHandler",
    "Revision",
]


@dataclass(frozen=True)
class Revision:
    """One rewrite: which step changed the name, from what, to what."""

    resolver: "NameResolver"
    previous: str
    name: str


@dataclass
class NameDiscovery:
    """Per-call state threaded through the chain."""

    name: str
    original: str
    context: Any = None
    current: Optional["NameResolver"] = None
    resolver: Optional["NameResolver"] = None
    history: List[Revision] = field(default_factory=list)
    stopped: bool = False

    @property
    def parent(self) -> Optional[Revision]:
        """The last rewrite, or None if the name was never changed."""
        return self.history[-1] if self.history else None

    def set_name(self, name: str, stop: bool = False) -> None:
        """Rewrite the candidate name on behalf of the running step."""
        if self.current is None:
            raise RuntimeError("set_name() called outside of a resolver step")
        self.history.append(Revision(self.current, self.name, name))
        self.resolver = self.current
        self.name = name
        if stop:
            self.stop()

    def stop(self) -> None:
        self.stopped = True


ResolverHandler = Callable[[NameDiscovery], None]


@dataclass(frozen=True)
class NameResolver:
    label: str
    handler: ResolverHandler = field(repr=False, compare=False)

    def __call__(self, discovery: NameDiscovery) -> None:
        self.handler(discovery)


class NameResolverChain:
    """Ordered list of resolver steps. Registration order is execution order.

    Example:
        >>> chain = NameResolverChain()
        >>> @chain.register("tenant")
        ... def tenant(discovery):
        ...     discovery.set_name(f"{discovery.context}_{discovery.name}")
        >>> chain.resolve("media", "acme")
        'acme_media'
    """

    def __init__(self) -> None:
        self._resolvers: List[NameResolver] = []

    def register(self, label: str, handler: Optional[ResolverHandler] = None) -> Any:
        """Append a step.

        With a handler, registers it and returns the NameResolver. Without
        one, returns a decorator.
        """
        if handler is None:

            def decorator(fn: ResolverHandler) -> ResolverHandler:
                self.register(label, fn)
                return fn

            return decorator

        resolver = NameResolver(label, handler)
        self._resolvers.append(resolver)
        return resolver

    def discover(self, name: str, context: Any = None) -> NameDiscovery:
        """Walk every step and return the full discovery record."""
        discovery = NameDiscovery(name=name, original=name, context=context)
        for resolver in self._resolvers:
            discovery.current = resolver
            resolver(discovery)
            if discovery.stopped:
                logger.debug("Resolver %r stopped at %r", resolver.label, discovery.name)
                break
        if discovery.history:
            logger.debug(
                "Resolved storage name %r -> %r via %s",
                name,
                discovery.name,
                " > ".join(rev.resolver.label for rev in discovery.history),
            )
        return discovery

    def resolve(self, name: str, context: Any = None) -> str:
        return self.discover(name, context).name

    @property
    def labels(self) -> List[str]:
        return [resolver.label for resolver in self._resolvers]

    def __len__(self) -> int:
        return len(self._resolvers)

    def __iter__(self) -> Iterator[NameResolver]:
        return iter(list(self._resolvers))
