"""In-process request dispatcher with an ordered behavior pipeline.

Example:
    mediator = Mediator(behaviors=[QueryCachingBehavior(cache)])
    mediator.register(GetCategoryTreeQuery, get_category_tree)
    tree = await mediator.send(GetCategoryTreeQuery())

Behaviors wrap the handler outermost-first: the first behavior in the
list sees the request first and the response last.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from functools import partial
from typing import Any, Protocol

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]
NextStep = Callable[[], Awaitable[Any]]


class PipelineBehavior(Protocol):
    async def __call__(self, request: Any, next_step: NextStep) -> Any: ...


class HandlerNotFoundError(LookupError):
    """No handler is registered for a request type."""

    def __init__(self, request_type: type):
        super().__init__(f"No handler registered for {request_type.__name__}")
        self.request_type = request_type


class Mediator:
    """Maps request types to async handlers."""

    def __init__(self, behaviors: Iterable[PipelineBehavior] = ()):
        self._handlers: dict[type, Handler] = {}
        self._behaviors: list[PipelineBehavior] = list(behaviors)

    @property
    def behaviors(self) -> tuple[PipelineBehavior, ...]:
        return tuple(self._behaviors)

    def add_behavior(self, behavior: PipelineBehavior) -> None:
        self._behaviors.append(behavior)

    def register(self, request_type: type, handler: Handler) -> None:
        if request_type in self._handlers:
            logger.warning("Replacing handler for %s", request_type.__name__)
        self._handlers[request_type] = handler

    def handler(self, request_type: type) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""

        def decorator(func: Handler) -> Handler:
            self.register(request_type, func)
            return func

        return decorator

    def handles(self, request_type: type) -> bool:
        return self._resolve(request_type) is not None

    def _resolve(self, request_type: type) -> Handler | None:
        for klass in request_type.__mro__:
            handler = self._handlers.get(klass)
            if handler is not None:
                return handler
        return None

    async def send(self, request: Any) -> Any:
        """Run ``request`` through every behavior and its handler."""
        handler = self._resolve(type(request))
        if handler is None:
            raise HandlerNotFoundError(type(request))

        step: NextStep = partial(handler, request)
        for behavior in reversed(self._behaviors):
            step = partial(behavior, request, step)
        return await step()
