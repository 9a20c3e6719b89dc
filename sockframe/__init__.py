"""WebSocket framing, messages, codecs, handshake validation and a blocking upgrade server."""

__version__ = "0.1.0"

__all__ = [
    "codec",
    "errors",
    "frame",
    "frame_header",
    "handshake",
    "mask",
    "message",
    "server",
    "stream",
    "transport",
    "upgrade",
]