import asyncio
import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from . import jsonrpc


class Point(BaseModel):
    x: float
    y: float


class Counter:
    """Shared counter, safe to bump from concurrent dispatches."""

    def __init__(self):
        self._value = 0
        self._lock = asyncio.Lock()

    async def add(self, by: int) -> int:
        async with self._lock:
            self._value += by
            return self._value


@dataclass
class DemoContext:
    version: str = "0.1.0"
    counter: Counter = field(default_factory=Counter)


class DemoService:
    @jsonrpc.method("getVersion")
    async def get_version(self, ctx: DemoContext) -> str:
        return ctx.version

    @jsonrpc.method
    async def add(self, ctx: DemoContext, a: int, b: int) -> int:
        return a + b

    @jsonrpc.method
    async def echo(self, ctx: DemoContext, value: Any) -> Any:
        return value

    @jsonrpc.method
    async def greet(self, ctx: DemoContext, name: str, greeting: str | None) -> str:
        return f"{greeting or 'Hello'}, {name}!"

    @jsonrpc.method
    async def distance(self, ctx: DemoContext, a: Point, b: Point) -> float:
        return math.hypot(a.x - b.x, a.y - b.y)

    @jsonrpc.method("counter.increment")
    async def increment(self, ctx: DemoContext, by: int = 1) -> int:
        return await ctx.counter.add(by)


def build_module(
    ctx: DemoContext | None = None, **options: bool
) -> jsonrpc.RpcModule[DemoContext]:
    """Creates a module serving the demo methods.

    ``options`` are passed on to ``RpcModule``.
    """
    module = jsonrpc.RpcModule(ctx or DemoContext(), **options)
    module.register_methods(DemoService())
    return module
