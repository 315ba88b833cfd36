"""
Framing for the host <-> standalone worker channel.

Each frame is a 4-byte big-endian length followed by a UTF-8 JSON object
with a ``type`` key.
"""

import json
import socket
import struct
from typing import Any, Dict, Optional

from skylight.exceptions import ProtocolError

HEADER = struct.Struct(">I")
MAX_FRAME_SIZE = 16 * 1024 * 1024

TRACE = "trace"
FLUSH = "flush"
SHUTDOWN = "shutdown"
ACK = "ack"


def encode_frame(message: Dict[str, Any]) -> bytes:
    body = json.dumps(message, separators=(",", ":")).encode("utf-8")
    if len(body) > MAX_FRAME_SIZE:
        raise ProtocolError(f"Frame too large: {len(body)} bytes")
    return HEADER.pack(len(body)) + body


def write_frame(sock: socket.socket, message: Dict[str, Any]) -> None:
    sock.sendall(encode_frame(message))


def read_frame(sock: socket.socket) -> Optional[Dict[str, Any]]:
    """Read one frame. Returns None when the peer closed the connection."""
    header = _read_exactly(sock, HEADER.size)
    if header is None:
        return None
    (length,) = HEADER.unpack(header)
    if length > MAX_FRAME_SIZE:
        raise ProtocolError(f"Frame too large: {length} bytes")
    body = _read_exactly(sock, length)
    if body is None:
        raise ProtocolError("Connection closed mid-frame")
    try:
        message = json.loads(body)
    except ValueError as e:
        raise ProtocolError(f"Malformed frame: {e}")
    if not isinstance(message, dict) or "type" not in message:
        raise ProtocolError("Frame must be an object with a type")
    return message


def _read_exactly(sock: socket.socket, size: int) -> Optional[bytes]:
    chunks = []
    remaining = size
    while remaining:
        chunk = sock.recv(remaining)
        if not chunk:
            if remaining == size:
                return None
            raise ProtocolError("Connection closed mid-frame")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
