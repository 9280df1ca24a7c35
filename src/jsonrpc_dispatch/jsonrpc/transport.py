"""JSON-RPC Transport Layer

The dispatcher itself never touches sockets. A transport hands it complete
request bodies and writes back the serialized responses.

The module defines:
1. ``JsonRpcTransport``, the protocol ``serve`` consumes
2. ``JsonRpcStreamTransport``, framing messages over an asyncio stream pair
   (TCP or unix sockets, stdin/stdout)
3. ``MessageTooLargeError``, raised instead of a body above the size limit
"""

import asyncio
import logging
from typing import Protocol

logger = logging.getLogger(__name__)

# Oversized bodies are skipped in pieces of at most this many bytes
_DISCARD_CHUNK = 64 * 1024


class MessageTooLargeError(Exception):
    """A frame announced a body larger than the transport accepts.

    The body has already been skipped when this is raised, so the next
    ``receive_message`` call starts at the following frame.
    """

    def __init__(self, length: int, limit: int):
        super().__init__(f"Message of {length} bytes exceeds the limit of {limit}")
        self.length = length
        self.limit = limit


class JsonRpcTransport(Protocol):
    """Protocol defining the transport layer interface.

    Example:
        ```python
        class QueueTransport(JsonRpcTransport):
            async def receive_message(self) -> bytes:
                return await self.inbox.get()

            async def send_message(self, body: str):
                await self.outbox.put(body)
        ```
    """

    async def receive_message(self) -> bytes:
        """Receive one complete request body.

        Raises:
            EOFError: Once the peer has closed the channel
            MessageTooLargeError: If the transport enforces a size limit and
                the next message exceeds it
        """
        ...

    async def send_message(self, body: str):
        """Send one serialized response."""
        ...


def _content_length(headers: dict[str, str]) -> int | None:
    value = headers.get("content-length")
    # str.isdigit also accepts non-ASCII digits such as "²"
    if value is None or not (value.isascii() and value.isdigit()):
        return None
    return int(value)


class JsonRpcStreamTransport:
    """Stream-based transport using ``Content-Length`` framing.

    Message Format:
        Content-Length: <length>
        Content-Type: application/json; charset=utf-8

        <message>

    Header bytes are decoded as latin-1, so no byte sequence a peer sends can
    break header parsing. Frames whose length is missing or not a decimal
    number are logged and skipped.

    Args:
        reader (asyncio.StreamReader): The stream reader
        writer (asyncio.StreamWriter): The stream writer
        max_message_size (int | None): Largest body to buffer, in bytes.
            Larger bodies are skipped without being held in memory and
            reported with ``MessageTooLargeError``.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        max_message_size: int | None = None,
    ):
        self._reader = reader
        self._writer = writer
        self._max_message_size = max_message_size

    async def _read_line(self) -> bytes:
        try:
            return await self._reader.readuntil(b"\r\n")
        except asyncio.LimitOverrunError as e:
            # The stream can't be resynchronized past an unbounded header line
            logger.warning("Header line exceeds the stream buffer limit")
            raise EOFError("Header line too long") from e

    async def _read_headers(self) -> dict[str, str]:
        """Read headers until an empty line, keyed by lower-cased name.

        Raises:
            EOFError: If the stream ends before headers are complete
        """
        headers: dict[str, str] = {}
        while (line := await self._read_line()) != b"\r\n":
            name, sep, value = line.decode("latin-1").partition(":")
            if not sep:
                logger.warning("Ignoring malformed header line %r", line)
                continue
            headers[name.strip().lower()] = value.strip()
        return headers

    async def _discard(self, length: int):
        while length > 0:
            chunk = min(length, _DISCARD_CHUNK)
            await self._reader.readexactly(chunk)
            length -= chunk

    async def receive_message(self) -> bytes:
        """Receive the body of the next framed message.

        Raises:
            EOFError: If the stream ends before a message is complete
            MessageTooLargeError: If the body is above ``max_message_size``
        """
        while True:
            headers = await self._read_headers()
            length = _content_length(headers)
            if length is None:
                logger.warning(
                    "Skipping frame with no valid Content-Length header",
                    extra={"headers": headers},
                )
                continue
            if self._max_message_size is not None and length > self._max_message_size:
                await self._discard(length)
                raise MessageTooLargeError(length, self._max_message_size)
            return await self._reader.readexactly(length)

    async def send_message(self, body: str):
        """Send a message preceded by its headers.

        The whole frame is written before the first await, so concurrent
        senders never interleave their frames.
        """
        contents = body.encode()
        self._writer.write(
            b"Content-Type: application/json;charset=utf-8\r\n"
            b"Content-Length: %d\r\n\r\n" % len(contents)
        )
        self._writer.write(contents)
        await self._writer.drain()
