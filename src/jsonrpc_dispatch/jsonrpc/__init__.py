from .errors import (
    JSONRPC_INTERNAL_ERROR,
    JSONRPC_INVALID_PARAMS,
    JSONRPC_INVALID_REQUEST,
    JSONRPC_METHOD_NOT_FOUND,
    JSONRPC_OVERSIZED_REQUEST,
    JSONRPC_PARSE_ERROR,
    JSONRPC_SERVER_IS_BUSY,
    ErrorCode,
    ErrorObject,
    HandlerContractError,
    JsonRpcException,
    ReservedCode,
    ServerError,
    from_code,
    message,
    to_code,
)
from .messages import Id, Params, Payload, Request, Response, Result, error_payload
from .module import RpcMethod, RpcModule, method
from .server import handle_bytes, handle_request, serve
from .transport import JsonRpcStreamTransport, JsonRpcTransport, MessageTooLargeError

__all__ = (
    "JSONRPC_INTERNAL_ERROR",
    "JSONRPC_INVALID_PARAMS",
    "JSONRPC_INVALID_REQUEST",
    "JSONRPC_METHOD_NOT_FOUND",
    "JSONRPC_OVERSIZED_REQUEST",
    "JSONRPC_PARSE_ERROR",
    "JSONRPC_SERVER_IS_BUSY",
    "ErrorCode",
    "ErrorObject",
    "HandlerContractError",
    "JsonRpcException",
    "ReservedCode",
    "ServerError",
    "from_code",
    "message",
    "to_code",
    "Id",
    "Params",
    "Payload",
    "Request",
    "Response",
    "Result",
    "error_payload",
    "RpcMethod",
    "RpcModule",
    "method",
    "handle_bytes",
    "handle_request",
    "serve",
    "JsonRpcStreamTransport",
    "JsonRpcTransport",
    "MessageTooLargeError",
)
