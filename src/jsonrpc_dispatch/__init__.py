import asyncio
import logging
import urllib.parse

import logfire

from . import demo, jsonrpc

logger = logging.getLogger(__name__)


async def _run(
    path: urllib.parse.ParseResult,
    module: jsonrpc.RpcModule,
    max_request_size: int | None,
):
    async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info("peername")
        with logfire.span("Serving {peer=}", peer=peer):
            try:
                await jsonrpc.serve(
                    jsonrpc.JsonRpcStreamTransport(
                        reader, writer, max_message_size=max_request_size
                    ),
                    module,
                    max_request_size=max_request_size,
                )
            finally:
                writer.close()

    match path.scheme:
        case "unix":
            server = await asyncio.start_unix_server(on_connect, path.path)
        case "tcp":
            server = await asyncio.start_server(on_connect, path.hostname, path.port)
        case _:
            raise ValueError(f"Unsupported scheme {path.scheme}")

    logger.info("Serving methods %s on %s", module.methods, path.geturl())
    async with server:
        await server.serve_forever()


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Serves the demo JSON-RPC methods over a socket."
    )
    parser.add_argument(
        "socket_path",
        help="URI of the socket to listen on. Examples: tcp://localhost:1234 unix:///tmp/rpc.sock",
        type=urllib.parse.urlparse,
    )
    parser.add_argument(
        "--max-request-size",
        type=int,
        default=None,
        help="Rejects requests larger than this many bytes",
    )
    parser.add_argument(
        "--reject-extra-params",
        action="store_true",
        help="Rejects params arrays longer than the method's parameter list instead of ignoring the extra values",
    )
    parser.add_argument(
        "--lax-params",
        dest="strict_params",
        action="store_false",
        help="Allows type coercion when binding params (e.g. \"2\" for an int)",
    )
    parser.add_argument(
        "--hide-internal-errors",
        dest="expose_internal_errors",
        action="store_false",
        help="Answers failed handlers with a generic message; details are only logged",
    )
    parser.add_argument(
        "--enable-logfire",
        action="store_true",
        help="Enables sending logs and spans to Logfire",
    )

    args = parser.parse_args()

    if args.enable_logfire:
        logfire.configure(scrubbing=False)
        logging.basicConfig(
            level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()]
        )
    else:
        logging.basicConfig(level=logging.INFO)

    logging.info("Starting loop", extra={"cliArgs": vars(args)})
    module = demo.build_module(
        strict_params=args.strict_params,
        reject_extra_params=args.reject_extra_params,
        expose_internal_errors=args.expose_internal_errors,
    )
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    loop.run_until_complete(_run(args.socket_path, module, args.max_request_size))
