import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import pytest
from pydantic import BaseModel

from jsonrpc_dispatch.jsonrpc import (
    ErrorObject,
    HandlerContractError,
    JsonRpcException,
    Result,
    RpcModule,
    method,
)


@dataclass
class AppState:
    version: str = "1.2.3"


class Pair(BaseModel):
    left: int
    right: int


def make_module(**options) -> RpcModule[AppState]:
    module = RpcModule(AppState(), **options)

    @module.register("getVersion")
    async def get_version(state: AppState) -> str:
        return state.version

    @module.register("add")
    async def add(state: AppState, a: int, b: int) -> int:
        return a + b

    @module.register("fail")
    async def fail(state: AppState):
        raise RuntimeError("boom")

    return module


@pytest.mark.asyncio
async def test_zero_arity_method():
    module = make_module()
    assert await module.call("getVersion") == Result("1.2.3")
    assert await module.call("getVersion", []) == Result("1.2.3")


@pytest.mark.asyncio
async def test_zero_arity_method_rejects_params():
    payload = await make_module().call("getVersion", [1])
    assert payload == ErrorObject(code=-32602, message="No params were expected")


@pytest.mark.asyncio
async def test_two_arity_method():
    module = make_module()
    assert await module.call("add", [2, 3]) == Result(5)
    assert await module.call("add", [2, 3, 4]) == Result(5)


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [["x", 3], [2], None, []])
async def test_two_arity_method_rejects_bad_params(params):
    payload = await make_module().call("add", params)
    assert isinstance(payload, ErrorObject)
    assert payload.code == -32602
    assert payload.message.startswith("Invalid params")


@pytest.mark.asyncio
async def test_reject_extra_params_option():
    payload = await make_module(reject_extra_params=True).call("add", [2, 3, 4])
    assert isinstance(payload, ErrorObject)
    assert payload.code == -32602


@pytest.mark.asyncio
async def test_unknown_method():
    payload = await make_module().call("nope", [1, 2])
    assert payload == ErrorObject(code=-32601, message="Method not found")


@pytest.mark.asyncio
async def test_failing_handler_is_internal_error(caplog):
    with caplog.at_level(logging.ERROR):
        payload = await make_module().call("fail")
    assert isinstance(payload, ErrorObject)
    assert payload.code == -32603
    assert payload.message == "Internal error: RuntimeError('boom')"
    assert "Method fail failed" in caplog.text


@pytest.mark.asyncio
async def test_internal_errors_can_be_hidden():
    payload = await make_module(expose_internal_errors=False).call("fail")
    assert payload == ErrorObject(code=-32603, message="Internal error")


@pytest.mark.asyncio
async def test_handler_can_choose_error_code():
    module = make_module()

    @module.register("withdraw")
    async def withdraw(state: AppState, amount: int) -> int:
        raise JsonRpcException("Insufficient funds", -32010)

    payload = await module.call("withdraw", [100])
    assert payload == ErrorObject(code=-32010, message="Insufficient funds")


@pytest.mark.asyncio
async def test_unserializable_result_is_a_contract_error():
    module = make_module()

    @module.register("broken")
    async def broken(state: AppState) -> Any:
        return object()

    with pytest.raises(HandlerContractError):
        await module.call("broken")


@pytest.mark.asyncio
async def test_result_is_serialized_to_json_values():
    module = make_module()

    @module.register("swap")
    async def swap(state: AppState, pair: Pair) -> Pair:
        return Pair(left=pair.right, right=pair.left)

    payload = await module.call("swap", [{"left": 1, "right": 2}])
    assert payload == Result({"left": 2, "right": 1})


@pytest.mark.asyncio
async def test_handler_gets_shared_context_and_is_skipped_on_bad_params():
    module = make_module()
    seen = []

    @module.register("record")
    async def record(state: AppState, value: int) -> None:
        seen.append((state, value))

    assert await module.call("record", [1]) == Result(None)
    assert isinstance(await module.call("record", ["nope"]), ErrorObject)
    assert seen == [(module.context, 1)]
    assert seen[0][0] is module.context


@pytest.mark.asyncio
async def test_trailing_param_with_default():
    module = make_module()

    @module.register("scale")
    async def scale(state: AppState, value: int, factor: int = 2) -> int:
        return value * factor

    assert await module.call("scale", [3]) == Result(6)
    assert await module.call("scale", [3, 5]) == Result(15)


@pytest.mark.asyncio
async def test_cancellation_propagates():
    module = make_module()
    started = asyncio.Event()

    @module.register("wait")
    async def wait(state: AppState) -> None:
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(module.call("wait"))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_concurrent_calls():
    module = make_module()

    @module.register("sleepy")
    async def sleepy(state: AppState, delay: float, value: int) -> int:
        await asyncio.sleep(delay)
        return value

    results = await asyncio.gather(
        module.call("sleepy", [0.02, 1]), module.call("sleepy", [0, 2])
    )
    assert results == [Result(1), Result(2)]


def test_duplicate_registration_last_wins(caplog):
    module = make_module()

    async def first(state: AppState) -> int:
        return 1

    async def second(state: AppState) -> int:
        return 2

    module.register("dup", first)
    with caplog.at_level(logging.WARNING):
        module.register("dup", second)
    assert "registered twice" in caplog.text
    assert asyncio.run(module.call("dup")) == Result(2)


def test_lookup_and_methods():
    module = make_module()
    assert module.methods == ["add", "fail", "getVersion"]
    assert module.lookup("add").arity == 2
    assert module.lookup("getVersion").arity == 0
    assert module.lookup("missing") is None


def test_register_returns_function():
    module = make_module()

    async def handler(state: AppState) -> int:
        return 1

    assert module.register("handler", handler) is handler
    assert module.register("other")(handler) is handler


def test_frozen_module_rejects_registration():
    module = make_module()
    module.freeze()
    assert module.frozen

    async def late(state: AppState) -> int:
        return 1

    with pytest.raises(RuntimeError):
        module.register("late", late)


def sync_handler(state):
    return 1


async def no_context():
    return 1


async def keyword_only(state, *, a: int):
    return a


async def var_args(state, *args):
    return args


async def var_kwargs(state, **kwargs):
    return kwargs


@pytest.mark.parametrize(
    "func", [sync_handler, no_context, keyword_only, var_args, var_kwargs]
)
def test_invalid_handlers_are_rejected(func):
    with pytest.raises(ValueError):
        make_module().register("bad", func)


class Calculator:
    def __init__(self):
        self.calls = 0

    @method
    async def add(self, state: AppState, a: int, b: int) -> int:
        self.calls += 1
        return a + b

    @method("math.negate")
    async def negate(self, state: AppState, a: int) -> int:
        return -a

    async def helper(self, state: AppState) -> int:
        return 0


def test_method_decorator_requires_async():
    with pytest.raises(ValueError):

        @method
        def not_async(state):
            return 1


@pytest.mark.asyncio
async def test_register_methods_from_object():
    module = RpcModule(AppState())
    calc = Calculator()
    assert sorted(module.register_methods(calc)) == ["add", "math.negate"]
    assert module.lookup("helper") is None

    assert await module.call("add", [1, 2]) == Result(3)
    assert await module.call("math.negate", [4]) == Result(-4)
    assert calc.calls == 1
