"""HTTP/1.1 request reading and response writing over an asyncio stream."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from http import HTTPStatus

import h11

logger = logging.getLogger(__name__)

# largest request body accepted, 100 MiB
PARSER_BODY_LIMITATION = 100 * 1024 * 1024

_READ_SIZE = 64 * 1024


def _tokens(value: str) -> list[str]:
    return [token.strip().lower() for token in value.split(",") if token.strip()]


def _version_number(http_version: bytes) -> int:
    major, _, minor = http_version.decode("ascii").partition(".")
    return int(major) * 10 + int(minor or 0)


@dataclass
class _HttpMessage:
    version: int = 11
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Value of a header, repeated fields joined by commas; None if absent."""
        wanted = name.lower()
        values = [value for key, value in self.headers if key.lower() == wanted]
        return ", ".join(values) if values else None

    def set_header(self, name: str, value: str) -> None:
        """Replace every field of that name with a single one."""
        self.remove_header(name)
        self.headers.append((name, value))

    def remove_header(self, name: str) -> None:
        wanted = name.lower()
        self.headers = [(key, value) for key, value in self.headers if key.lower() != wanted]

    def _connection_tokens(self) -> list[str]:
        value = self.header("connection")
        return _tokens(value) if value else []

    @property
    def keep_alive(self) -> bool:
        """Whether the connection stays open after this message."""
        tokens = self._connection_tokens()
        if "close" in tokens:
            return False
        if self.version >= 11:
            return True
        return "keep-alive" in tokens

    @keep_alive.setter
    def keep_alive(self, value: bool) -> None:
        tokens = [t for t in self._connection_tokens() if t not in ("close", "keep-alive")]
        if self.version >= 11:
            if not value:
                tokens.append("close")
        elif value:
            tokens.append("keep-alive")
        if tokens:
            self.set_header("Connection", ", ".join(tokens))
        else:
            self.remove_header("Connection")

    @property
    def need_eof(self) -> bool:
        """True when the connection must be closed after this message."""
        return not self.keep_alive


@dataclass
class HttpRequest(_HttpMessage):
    """A received HTTP request; ``version`` is 11 for HTTP/1.1."""

    method: str = "GET"
    target: str = "/"

    def is_upgrade(self) -> bool:
        """True for a WebSocket upgrade request."""
        if self.version < 11 or self.method.upper() != "GET":
            return False
        if "upgrade" not in self._connection_tokens():
            return False
        upgrade = self.header("upgrade")
        return upgrade is not None and "websocket" in _tokens(upgrade)


@dataclass
class HttpResponse(_HttpMessage):
    """An HTTP response to be written; ``version`` is 11 for HTTP/1.1."""

    status: int = HTTPStatus.OK

    def prepare_payload(self) -> None:
        """Set Content-Length to the size of the body."""
        self.set_header("Content-Length", str(len(self.body)))

    def __bytes__(self) -> bytes:
        major, minor = divmod(self.version, 10)
        status = int(self.status)
        try:
            reason = HTTPStatus(status).phrase
        except ValueError:
            reason = ""
        lines = [f"HTTP/{major}.{minor} {status} {reason}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers)
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1") + bytes(self.body)


def _format_endpoint(address: object) -> str:
    if isinstance(address, (tuple, list)) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return ""


class HttpStream:
    """Reads pipelined requests from and writes responses to one connection.

    Requests may be read while earlier responses are still unwritten.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        module_name: str = "DEFAULT",
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.module_name = module_name
        self.body_limit = PARSER_BODY_LIMITATION
        self._parser = h11.Connection(h11.SERVER)
        self._closed = False
        self._ended = False
        logger.debug("[%s][HTTP][STREAM] new stream %#x", module_name, id(self))

    @property
    def trailing_data(self) -> bytes:
        """Bytes received beyond the last request read."""
        return bytes(self._parser.trailing_data[0])

    def open(self) -> bool:
        return not self._closed and not self.writer.is_closing()

    def close(self) -> None:
        """Close the connection; further calls do nothing."""
        if self._closed:
            return
        self._closed = True
        logger.info("[%s][HTTP][STREAM] close the stream %#x", self.module_name, id(self))
        try:
            self.writer.close()
        except OSError as exc:
            logger.debug("[%s][HTTP][STREAM] close failed: %s", self.module_name, exc)

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionError("stream is closed")

    def _finish_cycle(self) -> None:
        """Let the parser accept the next pipelined request."""
        parser = self._parser
        if parser.their_state is h11.MIGHT_SWITCH_PROTOCOL:
            self._ended = True
            return
        # responses are written separately; this one only advances the parser
        parser.send(h11.Response(status_code=200, headers=[("Content-Length", "0")]))
        parser.send(h11.EndOfMessage())
        if parser.our_state is h11.DONE and parser.their_state is h11.DONE:
            parser.start_next_cycle()
        else:
            self._ended = True

    async def read_request(self) -> HttpRequest | None:
        """Read the next request; None once the peer has no more to send.

        Raises ValueError for a malformed or oversized request and
        ConnectionError when the stream is closed.
        """
        self._check_open()
        if self._ended:
            return None
        head: h11.Request | None = None
        body = bytearray()
        while True:
            try:
                event = self._parser.next_event()
            except h11.RemoteProtocolError as exc:
                raise ValueError(f"malformed http request: {exc}") from exc

            if event is h11.NEED_DATA:
                data = await self.reader.read(_READ_SIZE)
                self._parser.receive_data(data)
            elif isinstance(event, h11.Request):
                head = event
                body.clear()
                for name, value in event.headers:
                    if name == b"content-length" and int(value) > self.body_limit:
                        raise ValueError("request body exceeds the limit")
            elif isinstance(event, h11.Data):
                body += event.data
                if len(body) > self.body_limit:
                    raise ValueError("request body exceeds the limit")
            elif isinstance(event, h11.EndOfMessage):
                assert head is not None
                request = HttpRequest(
                    version=_version_number(head.http_version),
                    headers=[
                        (name.decode("latin-1"), value.decode("latin-1"))
                        for name, value in head.headers.raw_items()
                    ],
                    body=bytes(body),
                    method=head.method.decode("ascii"),
                    target=head.target.decode("latin-1"),
                )
                self._finish_cycle()
                return request
            else:
                # connection closed, or paused after a protocol switch
                self._ended = True
                return None

    async def write_response(self, response: HttpResponse) -> int:
        """Write a response and return the number of bytes written."""
        self._check_open()
        data = bytes(response)
        self.writer.write(data)
        await self.writer.drain()
        return len(data)

    def local_endpoint(self) -> str:
        """``ip:port`` of this side, or an empty string if unknown."""
        try:
            return _format_endpoint(self.writer.get_extra_info("sockname"))
        except (OSError, AttributeError):
            return ""

    def remote_endpoint(self) -> str:
        """``ip:port`` of the peer, or an empty string if unknown."""
        try:
            return _format_endpoint(self.writer.get_extra_info("peername"))
        except (OSError, AttributeError):
            return ""