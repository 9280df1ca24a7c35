"""Positional parameter binding

Turns the untyped ``params`` array of a request into the typed arguments a
handler declares. Every position is validated with a pydantic
``TypeAdapter`` built from the handler's annotations when the method is
registered, so nothing is inspected per call.

Binding is all-or-nothing: the first position that fails to validate
rejects the whole call with an ``Invalid params`` error, and the handler is
never entered.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Sequence

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_json

from .errors import JSONRPC_INVALID_PARAMS, NO_PARAMS_EXPECTED_MSG, JsonRpcException

_EMPTY = inspect.Parameter.empty


@dataclass(frozen=True)
class ParamSpec:
    """A single positional parameter of a handler."""

    name: str
    adapter: TypeAdapter
    default: Any = _EMPTY

    @classmethod
    def from_parameter(cls, param: inspect.Parameter, annotation: Any) -> "ParamSpec":
        if annotation is _EMPTY:
            annotation = Any
        return cls(param.name, TypeAdapter(annotation), param.default)


def _invalid_params(detail: str) -> JsonRpcException:
    return JsonRpcException(f"Invalid params: {detail}", JSONRPC_INVALID_PARAMS)


def _describe(name: str, err: ValidationError) -> str:
    parts = []
    for item in err.errors(include_url=False):
        loc = ".".join(str(p) for p in (name, *item["loc"]))
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


class ParamBinder:
    """Binds a params array to a fixed list of typed positional parameters.

    Args:
        specs (Sequence[ParamSpec]): The declared parameters, in order
        strict (bool): Validate without type coercion (``"2"`` is not an int)
        reject_extra (bool): Reject arrays longer than the declared arity
            instead of ignoring the trailing elements
    """

    def __init__(
        self,
        specs: Sequence[ParamSpec],
        *,
        strict: bool = True,
        reject_extra: bool = False,
    ):
        self._specs = tuple(specs)
        self._strict = strict
        self._reject_extra = reject_extra

    @property
    def arity(self) -> int:
        return len(self._specs)

    @property
    def all_defaulted(self) -> bool:
        return all(spec.default is not _EMPTY for spec in self._specs)

    def bind(self, params: Any) -> list[Any]:
        """Converts ``params`` into the handler's arguments.

        Missing trailing positions are bound from ``null``, unless the
        parameter declares a default value. Absent params are accepted only
        when every parameter has a default.

        Raises:
            JsonRpcException: With code -32602 if the params don't fit
        """
        if not self._specs:
            if params is None or params == []:
                return []
            if isinstance(params, list):
                raise JsonRpcException(NO_PARAMS_EXPECTED_MSG, JSONRPC_INVALID_PARAMS)
            raise _invalid_params("params must be an array")

        if params is None and self.all_defaulted:
            return [spec.default for spec in self._specs]
        if not isinstance(params, list):
            raise _invalid_params(f"expected an array of {self.arity} params")
        if self._reject_extra and len(params) > self.arity:
            raise _invalid_params(
                f"expected at most {self.arity} params but got {len(params)}"
            )

        args = []
        for i, spec in enumerate(self._specs):
            if i >= len(params) and spec.default is not _EMPTY:
                args.append(spec.default)
                continue
            value = params[i] if i < len(params) else None
            try:
                args.append(spec.adapter.validate_json(to_json(value), strict=self._strict))
            except ValidationError as e:
                raise _invalid_params(_describe(spec.name, e)) from e
        return args
