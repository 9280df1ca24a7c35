"""JSON-RPC 2.0 Message Type Definitions

This module defines the wire-level envelope exchanged with a client:

1. Id - The request identifier (null, a non-negative number or a string)
2. Request - A call to a method that requires a response
3. Payload - Either a successful ``Result`` or an ``ErrorObject``
4. Response - The reply, with the payload flattened into ``result`` or ``error``

All types are pydantic models, so parsing and serialization share one
schema. Requests are strict: unknown fields, a wrong ``jsonrpc`` version or
an ``id`` of any other JSON type fail validation.

References:
    JSON-RPC 2.0 Specification: https://www.jsonrpc.org/specification
"""

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictInt,
    StrictStr,
    Tag,
    ValidationInfo,
    model_serializer,
    model_validator,
)

from .errors import ErrorCode, ErrorObject

JSONRPC_VERSION = "2.0"

Id = Annotated[StrictInt, Field(ge=0, le=2**64 - 1)] | StrictStr | None
"""Request identifier. Numbers must fit in an unsigned 64-bit integer. No coercion
happens between the variants."""

Params = list[Any] | None
"""Positional parameters. ``None`` stands for both an absent and a null ``params``."""


@dataclass(frozen=True)
class Result:
    """Successful payload holding any JSON value."""

    value: Any = None


Payload = Result | ErrorObject
"""Union of the two payload variants."""


def _payload_kind(value: Any) -> str:
    return "result" if isinstance(value, Result) else "error"


_TaggedPayload = Annotated[
    Annotated[Result, Tag("result")] | Annotated[ErrorObject, Tag("error")],
    Discriminator(_payload_kind),
]


def error_payload(error: ErrorCode | int, message: str | None = None) -> ErrorObject:
    """Builds an error payload, with the canonical message unless one is given."""
    err = ErrorObject.from_code(error)
    if message is None:
        return err
    return ErrorObject(code=err.code, message=message)


class Request(BaseModel):
    """A JSON-RPC request message.

    Fields:
        jsonrpc: Must be exactly "2.0"
        method: The name of the method to be invoked
        params: Optional positional parameters
        id: Request identifier that will be echoed back in the response
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    jsonrpc: Literal["2.0"]
    method: StrictStr
    params: Params = None
    id: Id

    def dump(self) -> str:
        """Serializes the request, leaving out ``params`` if it was never set."""
        return self.model_dump_json(exclude_unset=True)


class Response(BaseModel):
    """A JSON-RPC response message.

    The payload is flattened on the wire into exactly one of ``result`` or
    ``error``. The default response (``Response()``) carries a null result
    and a null id; it is the seed for replies to unparseable requests.

    Fields:
        jsonrpc: Always "2.0"
        payload: The result of the method call, or the error that occurred
        id: The id from the original request, or null if it couldn't be determined
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    payload: _TaggedPayload = Field(default_factory=Result)
    id: Id = None

    @model_validator(mode="before")
    @classmethod
    def _unflatten_payload(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict) or "payload" in data:
            return data
        data = dict(data)
        if "result" in data and "error" in data:
            raise ValueError("A response can't carry both a result and an error")
        if "result" in data:
            data["payload"] = Result(data.pop("result"))
        elif "error" in data:
            data["payload"] = data.pop("error")
        elif data or info.mode == "json":
            # Only the argument-less constructor falls back to the default payload
            raise ValueError("A response must carry either a result or an error")
        return data

    @model_serializer
    def _flatten_payload(self) -> dict[str, Any]:
        res: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if isinstance(self.payload, ErrorObject):
            res["error"] = self.payload.model_dump()
        else:
            res["result"] = self.payload.value
        res["id"] = self.id
        return res

    @property
    def is_error(self) -> bool:
        return isinstance(self.payload, ErrorObject)

    def dump(self) -> str:
        """Prints out the response as a JSON string."""
        return self.model_dump_json()
