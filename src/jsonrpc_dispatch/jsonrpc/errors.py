"""JSON-RPC 2.0 Error Taxonomy

This module defines the error vocabulary used by the dispatcher:

1. The reserved error codes and their canonical messages
2. The open ``ServerError`` variant for every other integer code
3. The wire-level ``ErrorObject``
4. ``JsonRpcException``, raised to turn a failure into a specific error payload

An error code is either a ``ReservedCode`` member or a ``ServerError``
carrying an arbitrary integer. ``from_code`` is total: it never fails.

Example:
    ```python
    >>> from_code(-32601)
    <ReservedCode.METHOD_NOT_FOUND: -32601>
    >>> from_code(-32000)
    ServerError(code=-32000)
    >>> ErrorObject.from_code(ReservedCode.INVALID_PARAMS).model_dump()
    {'code': -32602, 'message': 'Invalid params'}
    ```

References:
    JSON-RPC 2.0 Specification: https://www.jsonrpc.org/specification#error_object
"""

from dataclasses import dataclass
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr

JSONRPC_PARSE_ERROR = -32700
"""Invalid JSON was received by the server."""

JSONRPC_INVALID_REQUEST = -32600
"""The JSON sent is not a valid Request object."""

JSONRPC_METHOD_NOT_FOUND = -32601
"""The method does not exist / is not available."""

JSONRPC_INVALID_PARAMS = -32602
"""Invalid method parameter(s)."""

JSONRPC_INTERNAL_ERROR = -32603
"""Internal JSON-RPC error."""

JSONRPC_SERVER_IS_BUSY = -32009
"""Server is busy / resources are at capacity."""

JSONRPC_OVERSIZED_REQUEST = -32007
"""The request was too big."""

SERVER_ERROR_MSG = "Server error"
NO_PARAMS_EXPECTED_MSG = "No params were expected"


class ReservedCode(IntEnum):
    """Error codes with a fixed, canonical message."""

    PARSE_ERROR = JSONRPC_PARSE_ERROR
    INVALID_REQUEST = JSONRPC_INVALID_REQUEST
    METHOD_NOT_FOUND = JSONRPC_METHOD_NOT_FOUND
    INVALID_PARAMS = JSONRPC_INVALID_PARAMS
    INTERNAL_ERROR = JSONRPC_INTERNAL_ERROR
    SERVER_IS_BUSY = JSONRPC_SERVER_IS_BUSY
    OVERSIZED_REQUEST = JSONRPC_OVERSIZED_REQUEST

    @property
    def message(self) -> str:
        return _RESERVED_MESSAGES[self]


_RESERVED_MESSAGES: dict[ReservedCode, str] = {
    ReservedCode.PARSE_ERROR: "Parse error",
    ReservedCode.INVALID_REQUEST: "Invalid request",
    ReservedCode.METHOD_NOT_FOUND: "Method not found",
    ReservedCode.INVALID_PARAMS: "Invalid params",
    ReservedCode.INTERNAL_ERROR: "Internal error",
    ReservedCode.SERVER_IS_BUSY: "Server is busy, try again later",
    ReservedCode.OVERSIZED_REQUEST: "Request is too big",
}


@dataclass(frozen=True)
class ServerError:
    """Implementation-defined error code outside the reserved table."""

    code: int

    @property
    def message(self) -> str:
        return SERVER_ERROR_MSG


ErrorCode = ReservedCode | ServerError
"""Union of all error code variants."""


def from_code(code: int) -> ErrorCode:
    """Maps an integer code to its variant. Unknown codes become ``ServerError``."""
    try:
        return ReservedCode(code)
    except ValueError:
        return ServerError(code)


def to_code(error: ErrorCode) -> int:
    if isinstance(error, ServerError):
        return error.code
    return int(error)


def message(error: ErrorCode) -> str:
    return error.message


class ErrorObject(BaseModel):
    """A JSON-RPC error object.

    Only ``code`` and ``message`` are accepted; any other field fails
    validation.

    Fields:
        code: The integer error code
        message: A short description of the error
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    code: StrictInt
    message: StrictStr

    @classmethod
    def from_code(cls, error: ErrorCode | int) -> "ErrorObject":
        """Builds the error object for ``error`` with its canonical message."""
        if isinstance(error, int) and not isinstance(error, ReservedCode):
            error = from_code(error)
        return cls(code=to_code(error), message=error.message)

    @property
    def error_code(self) -> ErrorCode:
        return from_code(self.code)


class JsonRpcException(Exception):
    """Exception raised for JSON-RPC specific errors.

    Handlers raise it to answer with a specific error code instead of the
    generic internal error. The parameter binder raises it with
    ``JSONRPC_INVALID_PARAMS`` when binding fails.

    Args:
        message (str): A human-readable error description
        code (int): The JSON-RPC error code

    Example:
        ```python
        async def withdraw(ctx: Bank, amount: int) -> int:
            if amount > ctx.balance:
                raise JsonRpcException("Insufficient funds", -32010)
            ...
        ```
    """

    def __init__(self, message: str, code: int):
        super(JsonRpcException, self).__init__(message)
        self.code = code

    def to_err(self) -> ErrorObject:
        """Convert the exception to a JSON-RPC error object.

        Returns:
            ErrorObject: The error object for the JSON-RPC response
        """
        return ErrorObject(code=int(self.code), message=str(self))

    @staticmethod
    def from_error(err: ErrorObject) -> "JsonRpcException":
        return JsonRpcException(err.message, err.code)


class HandlerContractError(RuntimeError):
    """A handler returned a value that cannot be serialized to JSON.

    This is a programming error in the handler, not something a client can
    cause, so it is raised out of the dispatcher instead of being turned
    into an error payload.
    """
