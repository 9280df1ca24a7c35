"""JSON-RPC Method Registry and Dispatcher

This module provides the core of the dispatch engine:

1. ``RpcMethod`` - adapts a typed async handler to one uniform shape
2. ``RpcModule`` - the method registry, holding the shared context
3. ``RpcModule.call`` - the dispatcher turning a method name and params into a payload
4. The ``method`` decorator, marking handlers on a service object

Handlers are plain ``async def`` functions. The first parameter receives the
module's context; the remaining positional parameters are bound from the
request's ``params`` array using their type annotations, and the return
value is serialized using the return annotation.

Example:
    ```python
    @dataclass
    class AppState:
        version: str

    module = RpcModule(AppState(version="1.0"))

    @module.register("add")
    async def add(state: AppState, a: int, b: int) -> int:
        return a + b

    payload = await module.call("add", [2, 3])
    assert payload == Result(5)
    ```

The registry is meant to be filled in once during setup. ``freeze`` (called
by ``serve``) rejects any later registration; lookups never take a lock.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, get_type_hints, overload

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from .binding import ParamBinder, ParamSpec
from .errors import (
    ErrorObject,
    HandlerContractError,
    JsonRpcException,
    ReservedCode,
)
from .messages import Params, Payload, Result, error_payload

logger = logging.getLogger(__name__)


def _handler_params(func: Callable) -> list[inspect.Parameter]:
    """Check if a handler function has a valid signature.

    Handlers must be async, take the context as their first positional
    parameter and only declare positional parameters after it.

    Args:
        func (Callable): The function to check

    Returns:
        list[inspect.Parameter]: The parameters bound from the request

    Raises:
        ValueError: If the function can't be used as a handler
    """
    if not inspect.iscoroutinefunction(func):
        raise ValueError("Only async functions can be RPC methods")

    params = list(inspect.signature(func).parameters.values())
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    )
    if not params or params[0].kind not in positional:
        raise ValueError(
            "RPC methods must accept the context as their first positional parameter"
        )

    for param in params[1:]:
        match param.kind:
            case inspect.Parameter.VAR_POSITIONAL | inspect.Parameter.VAR_KEYWORD:
                raise ValueError(
                    f"RPC methods can't declare variadic parameters (found {param})"
                )
            case inspect.Parameter.KEYWORD_ONLY:
                raise ValueError(
                    f"RPC methods only accept positional parameters (found {param})"
                )
    return params[1:]


@overload
def method[T: Callable[..., Any]](name: str) -> Callable[[T], T]: ...


@overload
def method[T: Callable[..., Any]](func: T) -> T: ...


def method(name_or_func):
    """Decorator to mark a function as a JSON-RPC method.

    Marked functions are picked up by ``RpcModule.register_methods``. The
    decorated function must be async.

    Args:
        name_or_func (str | Callable): Either the method name to use in RPC calls,
            or the function to decorate. If a string is provided, it will be used
            as the method name, otherwise the function's name will be used.

    Returns:
        Callable: The decorated function.

    Raises:
        ValueError: If the decorated function is not async.

    Example:
        ```python
        class Calculator:
            @method
            async def add(self, ctx: AppState, a: float, b: float) -> float: ...

            @method("multiply")  # Use custom method name
            async def mul(self, ctx: AppState, a: float, b: float) -> float: ...
        ```
    """
    if isinstance(name_or_func, str):
        name = name_or_func
    else:
        name = name_or_func.__name__

    def decorator[T: Callable[..., Any]](func: T) -> T:
        if not inspect.iscoroutinefunction(func):
            raise ValueError("Only async methods can be RPC methods")
        setattr(func, "__jsonrpc_method__", name)
        return func

    if isinstance(name_or_func, str):
        return decorator
    else:
        return decorator(name_or_func)


class RpcMethod:
    """A registered handler behind the uniform ``(context, params)`` shape.

    Args:
        name (str): The method name the handler is registered under
        func (Callable): The async handler
        strict_params (bool): Validate params without type coercion
        reject_extra_params (bool): Reject params arrays longer than the arity
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        *,
        strict_params: bool = True,
        reject_extra_params: bool = False,
    ):
        params = _handler_params(func)
        hints = get_type_hints(func)

        self.name = name
        self._func = func
        self._binder = ParamBinder(
            [ParamSpec.from_parameter(p, hints.get(p.name, p.annotation)) for p in params],
            strict=strict_params,
            reject_extra=reject_extra_params,
        )
        self._returns = TypeAdapter(hints.get("return", Any))

    @property
    def arity(self) -> int:
        return self._binder.arity

    def prepare(self, ctx: Any, params: Params) -> Awaitable[Payload]:
        """Binds ``params`` and returns the pending handler invocation.

        Binding happens synchronously; the handler body only runs once the
        returned awaitable is awaited.

        Raises:
            JsonRpcException: If the params can't be bound
        """
        args = self._binder.bind(params)
        return self._invoke(ctx, args)

    async def _invoke(self, ctx: Any, args: list[Any]) -> Payload:
        value = await self._func(ctx, *args)
        try:
            return Result(self._returns.dump_python(value, mode="json"))
        except PydanticSerializationError as e:
            raise HandlerContractError(
                f"Method {self.name} returned a value that can't be serialized: {e}"
            ) from e


class RpcModule[Ctx]:
    """Stores the method table together with the shared context.

    Every dispatch hands the same context object to its handler. Handlers
    that mutate it must synchronize on their own.

    Args:
        ctx (Ctx): The context passed to every handler
        strict_params (bool): Validate params without type coercion. Defaults to True.
        reject_extra_params (bool): Reject params arrays longer than a method's
            arity. Defaults to False, which ignores the extra elements.
        expose_internal_errors (bool): Include a rendering of a handler's
            exception in the error message. Defaults to True. When False the
            client only sees "Internal error"; the exception is logged either way.
    """

    def __init__(
        self,
        ctx: Ctx,
        *,
        strict_params: bool = True,
        reject_extra_params: bool = False,
        expose_internal_errors: bool = True,
    ):
        self._ctx = ctx
        self._methods: dict[str, RpcMethod] = {}
        self._frozen = False
        self._strict_params = strict_params
        self._reject_extra_params = reject_extra_params
        self._expose_internal_errors = expose_internal_errors

    @property
    def context(self) -> Ctx:
        return self._ctx

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        """Stops accepting registrations. Called once serving begins."""
        self._frozen = True

    def register(self, method_name: str, func: Callable | None = None):
        """Registers a function as a handler for a specific RPC method.

        Registering the same name twice replaces the previous handler.

        Args:
            method_name (str): The name of the RPC method to handle.
            func (Callable | None, optional): The handler function. If None,
                returns a decorator. Defaults to None.

        Returns:
            Callable: A decorator if func is None, otherwise the function itself.

        Raises:
            ValueError: If the function can't be used as a handler.
            RuntimeError: If the module has been frozen.
        """

        def decorator(func):
            if self._frozen:
                raise RuntimeError(
                    f"Can't register {method_name}: the module is already serving"
                )
            handler = RpcMethod(
                method_name,
                func,
                strict_params=self._strict_params,
                reject_extra_params=self._reject_extra_params,
            )
            if method_name in self._methods:
                logger.warning("Method %s registered twice, replacing it", method_name)
            self._methods[method_name] = handler
            logger.debug("Registered method %s (arity %d)", method_name, handler.arity)
            return func

        if func is None:
            return decorator
        else:
            return decorator(func)

    def register_methods(self, obj: object) -> list[str]:
        """Registers every attribute of ``obj`` marked with ``@method``.

        Returns:
            list[str]: The registered method names
        """
        names = []
        for attr_name in dir(obj):
            if attr_name.startswith("_"):
                continue
            attr = getattr(obj, attr_name)
            name: str | None = getattr(attr, "__jsonrpc_method__", None)
            if name is None:
                continue
            self.register(name, attr)
            names.append(name)
        return names

    def lookup(self, method_name: str) -> RpcMethod | None:
        return self._methods.get(method_name)

    async def call(self, method_name: str, params: Params = None) -> Payload:
        """Dispatches one call.

        Every failure a client can cause ends up in the returned payload:
        unknown methods, params that don't bind and handler exceptions.

        Args:
            method_name (str): The name of the RPC method to call.
            params (Params): The positional params, or None.

        Returns:
            Payload: ``Result`` on success, ``ErrorObject`` otherwise.

        Raises:
            HandlerContractError: If the handler's result can't be serialized.
        """
        handler = self.lookup(method_name)
        if handler is None:
            logger.info("Method %s not found", method_name)
            return ErrorObject.from_code(ReservedCode.METHOD_NOT_FOUND)

        try:
            pending = handler.prepare(self._ctx, params)
        except JsonRpcException as e:
            logger.info(
                "Rejected params for %s: %s", method_name, e, extra={"params": params}
            )
            return e.to_err()

        try:
            return await pending
        except HandlerContractError:
            raise
        except JsonRpcException as e:
            return e.to_err()
        except Exception as e:
            logger.exception("Method %s failed", method_name)
            if self._expose_internal_errors:
                return error_payload(
                    ReservedCode.INTERNAL_ERROR,
                    f"{ReservedCode.INTERNAL_ERROR.message}: {e!r}",
                )
            return ErrorObject.from_code(ReservedCode.INTERNAL_ERROR)
