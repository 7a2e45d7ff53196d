"""
Framing for the jsonsock wire protocol.

Requests arrive as a Java object-serialization stream that only ever carries strings:
a 4 byte stream header (magic AC ED, version 00 05) followed by one TC_STRING / TC_LONGSTRING
record per request. Responses go back in DataOutputStream.writeUTF framing: a 2 byte big-endian
length and the modified UTF-8 bytes, no header.

RequestReader works like h11.Connection on the server side: it never touches a socket.
Bytes are fed in with receive_data() (b"" means the peer closed its side) and next_event()
hands back one of NEED_DATA, Message or EndOfStream, or raises FramingError.
"""
import json
import struct
from dataclasses import dataclass
from typing import Any


STREAM_MAGIC = b"\xac\xed"
STREAM_VERSION = b"\x00\x05"
STREAM_HEADER = STREAM_MAGIC + STREAM_VERSION

TC_REFERENCE = 0x71
TC_STRING = 0x74
TC_RESET = 0x79
TC_LONGSTRING = 0x7C

BASE_WIRE_HANDLE = 0x7E0000
MAX_UTF_LENGTH = 0xFFFF
DEFAULT_MAX_MESSAGE_SIZE = 16 * 1024 * 1024


class FramingError(Exception):
    """The byte stream can no longer be read as a sequence of messages."""


class _Sentinel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name


NEED_DATA = _Sentinel("NEED_DATA")


@dataclass(frozen=True)
class Message:
    text: str


@dataclass(frozen=True)
class EndOfStream:
    pass


def decode_modified_utf8(data: bytes) -> str:
    # C0 80 never appears in standard UTF-8, so it can only be Java's encoded NUL
    try:
        text = data.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
        # characters outside the BMP arrive as two separately encoded surrogates; pair them up
        return text.encode("utf-16-be", "surrogatepass").decode("utf-16-be", "surrogatepass")
    except UnicodeError as exc:
        raise FramingError(f"malformed modified UTF-8: {exc}") from exc


def encode_modified_utf8(text: str) -> bytes:
    units = text.encode("utf-16-be", "surrogatepass")
    chars = "".join(map(chr, struct.unpack(f">{len(units) // 2}H", units)))
    return chars.encode("utf-8", "surrogatepass").replace(b"\x00", b"\xc0\x80")


def encode_response(response: dict[str, Any]) -> bytes:
    """
    Frame a response the way DataOutputStream.writeUTF does.
    Anything over 65535 encoded bytes cannot be represented in the 2 byte length prefix.
    """
    body = encode_modified_utf8(json.dumps(response, ensure_ascii=False, separators=(",", ":")))
    if len(body) > MAX_UTF_LENGTH:
        raise FramingError(f"encoded response too long: {len(body)} bytes")
    return struct.pack(">H", len(body)) + body


def decode_response_header(header: bytes) -> int:
    (length,) = struct.unpack(">H", header)
    return length


def encode_stream_header() -> bytes:
    return STREAM_HEADER


def encode_request(text: str) -> bytes:
    body = encode_modified_utf8(text)
    if len(body) <= MAX_UTF_LENGTH:
        return struct.pack(">BH", TC_STRING, len(body)) + body
    return struct.pack(">Bq", TC_LONGSTRING, len(body)) + body


class RequestReader:
    """
    Incremental decoder for the client to server direction.

    The stream header is checked before the first record is parsed. Strings that were already
    sent can be repeated by the peer with TC_REFERENCE, so every decoded string is kept in a
    handle table until a TC_RESET arrives.
    """

    def __init__(self, max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE):
        self.max_message_size = max_message_size
        self._buffer = bytearray()
        self._header_checked = False
        self._eof = False
        self._handles: list[str] = []

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def receive_data(self, data: bytes) -> None:
        if not data:
            self._eof = True
            return
        if self._eof:
            raise RuntimeError("received data after end of stream")
        self._buffer += data

    def next_event(self) -> Message | EndOfStream | _Sentinel:
        if not self._header_checked:
            if len(self._buffer) < len(STREAM_HEADER):
                return self._starved()
            header = bytes(self._buffer[:len(STREAM_HEADER)])
            if header != STREAM_HEADER:
                raise FramingError(f"invalid stream signature: {header.hex().upper()}")
            del self._buffer[:len(STREAM_HEADER)]
            self._header_checked = True

        while self._buffer:
            tag = self._buffer[0]
            if tag == TC_RESET:
                del self._buffer[:1]
                self._handles.clear()
                continue
            if tag == TC_REFERENCE:
                if len(self._buffer) < 5:
                    return self._starved()
                (handle,) = struct.unpack_from(">I", self._buffer, 1)
                index = handle - BASE_WIRE_HANDLE
                if not 0 <= index < len(self._handles):
                    raise FramingError(f"unknown back reference 0x{handle:08X}")
                del self._buffer[:5]
                return Message(self._handles[index])
            if tag == TC_STRING:
                prefix, fmt = 3, ">H"
            elif tag == TC_LONGSTRING:
                prefix, fmt = 9, ">q"
            else:
                raise FramingError(f"unexpected type code 0x{tag:02X}, expected a string")

            if len(self._buffer) < prefix:
                return self._starved()
            (length,) = struct.unpack_from(fmt, self._buffer, 1)
            if length < 0 or length > self.max_message_size:
                raise FramingError(f"declared message length {length} out of bounds")
            if len(self._buffer) < prefix + length:
                return self._starved()
            text = decode_modified_utf8(bytes(self._buffer[prefix:prefix + length]))
            del self._buffer[:prefix + length]
            self._handles.append(text)
            return Message(text)

        return self._starved()

    def _starved(self) -> EndOfStream | _Sentinel:
        if not self._eof:
            return NEED_DATA
        if self._buffer:
            raise FramingError("unexpected disconnect mid-message")
        return EndOfStream()
