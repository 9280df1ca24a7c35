"""Request handling on top of an ``RpcModule``

``handle_request`` is the entry point for transports that already have a
complete request body in hand: it parses the body, dispatches it and returns
the response. ``serve`` drives a ``JsonRpcTransport`` until the peer goes
away, dispatching requests concurrently.

Example:
    ```python
    async def on_connect(reader, writer):
        await serve(JsonRpcStreamTransport(reader, writer), module)

    server = await asyncio.start_server(on_connect, "127.0.0.1", 8080)
    ```
"""

import asyncio
import logging

from pydantic import ValidationError

from .errors import ErrorObject, ReservedCode
from .messages import Request, Response
from .module import RpcModule
from .transport import JsonRpcTransport, MessageTooLargeError

logger = logging.getLogger(__name__)


async def handle_request(
    module: RpcModule,
    body: bytes | str,
    *,
    max_request_size: int | None = None,
) -> Response:
    """Parses ``body`` as a request and dispatches it.

    A body that isn't a valid request yields a parse error with a null id,
    since the request's own id can't be trusted.

    Args:
        module (RpcModule): The module to dispatch to
        body (bytes | str): The raw request
        max_request_size (int | None): Reject larger bodies (in bytes)

    Raises:
        HandlerContractError: If the handler's result can't be serialized
    """
    raw = body.encode() if isinstance(body, str) else body
    if max_request_size is not None and len(raw) > max_request_size:
        logger.info("Rejected request of %d bytes", len(raw))
        return Response(payload=ErrorObject.from_code(ReservedCode.OVERSIZED_REQUEST))

    try:
        req = Request.model_validate_json(raw)
    except ValidationError as e:
        logger.info(
            "Received unparseable request",
            extra={"errors": e.errors(include_url=False, include_input=False)},
        )
        return Response(payload=ErrorObject.from_code(ReservedCode.PARSE_ERROR))

    logger.debug("Handling request", extra={"jsonRpcMsg": req.model_dump()})
    payload = await module.call(req.method, req.params)
    return Response(jsonrpc=req.jsonrpc, payload=payload, id=req.id)


async def handle_bytes(
    module: RpcModule,
    body: bytes | str,
    *,
    max_request_size: int | None = None,
) -> bytes:
    """Same as ``handle_request``, returning the serialized response."""
    response = await handle_request(module, body, max_request_size=max_request_size)
    return response.dump().encode()


async def _respond(
    transport: JsonRpcTransport,
    module: RpcModule,
    body: bytes,
    max_request_size: int | None,
):
    response = await handle_request(module, body, max_request_size=max_request_size)
    logger.debug("Sending response", extra={"jsonRpcMsg": response.model_dump()})
    await transport.send_message(response.dump())


async def serve(
    transport: JsonRpcTransport,
    module: RpcModule,
    *,
    max_request_size: int | None = None,
):
    """Serves requests from ``transport`` until it reaches end of stream.

    The module is frozen first. Each request is dispatched in its own task,
    so responses may be sent in a different order than the requests came
    in. Once the peer closes the stream, in-flight requests are still
    answered before returning.

    A transport that rejects a message with ``MessageTooLargeError`` gets an
    oversized-request error with a null id back, and serving goes on.

    Raises:
        ExceptionGroup: If a request task fails, which only happens when a
            handler breaks its contract. The other in-flight requests are
            cancelled.
    """
    module.freeze()
    async with asyncio.TaskGroup() as tg:
        while True:
            try:
                body = await transport.receive_message()
            except MessageTooLargeError as e:
                logger.info("Rejected request of %d bytes", e.length)
                response = Response(
                    payload=ErrorObject.from_code(ReservedCode.OVERSIZED_REQUEST)
                )
                await transport.send_message(response.dump())
                continue
            except EOFError:
                logger.debug("Transport reached end of stream")
                break
            tg.create_task(_respond(transport, module, body, max_request_size))
