"""Tests for the request mediator."""

from dataclasses import dataclass

import pytest

from learnhub.pipeline.mediator import HandlerNotFoundError, Mediator


@dataclass
class Ping:
    text: str


@dataclass
class LoudPing(Ping):
    pass


class TestMediator:
    """Test handler dispatch and behavior ordering."""

    async def test_send_dispatches_to_handler(self) -> None:
        mediator = Mediator()

        async def handle(request: Ping) -> str:
            return request.text.upper()

        mediator.register(Ping, handle)
        assert await mediator.send(Ping("hi")) == "HI"

    async def test_decorator_registration(self) -> None:
        mediator = Mediator()

        @mediator.handler(Ping)
        async def handle(request: Ping) -> str:
            return request.text

        assert mediator.handles(Ping)
        assert await mediator.send(Ping("hi")) == "hi"

    async def test_subclass_uses_base_handler(self) -> None:
        """Handlers are resolved along the request's MRO."""
        mediator = Mediator()

        async def handle(request: Ping) -> str:
            return type(request).__name__

        mediator.register(Ping, handle)
        assert await mediator.send(LoudPing("hi")) == "LoudPing"

    async def test_most_specific_handler_wins(self) -> None:
        mediator = Mediator()

        async def base(request: Ping) -> str:
            return "base"

        async def loud(request: Ping) -> str:
            return "loud"

        mediator.register(Ping, base)
        mediator.register(LoudPing, loud)
        assert await mediator.send(LoudPing("hi")) == "loud"
        assert await mediator.send(Ping("hi")) == "base"

    async def test_missing_handler(self) -> None:
        mediator = Mediator()
        assert not mediator.handles(Ping)
        with pytest.raises(HandlerNotFoundError):
            await mediator.send(Ping("hi"))

    async def test_behaviors_wrap_outermost_first(self) -> None:
        """The first behavior sees the request first and the response last."""
        events: list[str] = []

        def tracing(name: str):
            async def behavior(request, next_step):
                events.append(f"{name}:before")
                response = await next_step()
                events.append(f"{name}:after")
                return response

            return behavior

        async def handle(request: Ping) -> str:
            events.append("handler")
            return "ok"

        mediator = Mediator(behaviors=[tracing("outer")])
        mediator.add_behavior(tracing("inner"))
        mediator.register(Ping, handle)

        assert await mediator.send(Ping("hi")) == "ok"
        assert events == ["outer:before", "inner:before", "handler", "inner:after", "outer:after"]
        assert len(mediator.behaviors) == 2

    async def test_behavior_can_short_circuit(self) -> None:
        calls: list[Ping] = []

        async def handle(request: Ping) -> str:
            calls.append(request)
            return "handler"

        async def short_circuit(request, next_step):
            return "cached"

        mediator = Mediator(behaviors=[short_circuit])
        mediator.register(Ping, handle)

        assert await mediator.send(Ping("hi")) == "cached"
        assert calls == []
