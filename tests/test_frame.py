import io

import pytest

from sockframe.errors import DataFrameError, NoDataAvailable, WebSocketIOError
from sockframe.frame import DataFrame, Frame, MessageBase, Opcode
from sockframe.frame_header import DataFrameFlags, DataFrameHeader

FOX = b"The quick brown fox jumps over the lazy dog"


def test_read_dataframe():
    raw = bytes([0x81, 0x2B]) + FOX
    obtained = DataFrame.read(io.BytesIO(raw), False)
    expected = DataFrame(finished=True, opcode=Opcode.TEXT, data=FOX)
    assert obtained == expected
    assert obtained.reserved == (False, False, False)


def test_read_incomplete_payloads():
    data = bytes([0x8A, 0x08, 0x19, 0xAC, 0xAB, 0x8A, 0x52, 0x4E, 0x05, 0x00])
    payload = bytes([25, 172, 171, 138, 82, 78, 5, 0])

    with pytest.raises(NoDataAvailable):
        DataFrame.read(io.BytesIO(data[:1]), False)
    with pytest.raises(NoDataAvailable):
        DataFrame.read(io.BytesIO(data[:6]), False)

    full = DataFrame.read(io.BytesIO(data), False)
    assert full.data == payload
    assert full.opcode is Opcode.PONG

    more = DataFrame.read(io.BytesIO(data + b"\xff"), False)
    assert more.data == payload


def test_write_dataframe():
    expected = bytes([0x81, 0x2B]) + FOX
    frame = DataFrame(finished=True, opcode=Opcode.TEXT, data=FOX)
    out = io.BytesIO()
    frame.write_to(out, False)
    assert out.getvalue() == expected


def test_masked_round_trip():
    frame = DataFrame(finished=False, opcode=Opcode.BINARY, data=FOX)
    out = io.BytesIO()
    frame.write_to(out, True)
    raw = out.getvalue()
    assert raw[1] & 0x80
    assert raw[6:] != FOX or FOX == b""
    assert DataFrame.read(io.BytesIO(raw), True) == frame


def test_masked_frame_rejected_when_unmasked_expected():
    out = io.BytesIO()
    DataFrame(True, Opcode.TEXT, b"hi").write_to(out, True)
    with pytest.raises(DataFrameError) as info:
        DataFrame.read(io.BytesIO(out.getvalue()), False)
    assert info.value.detail == "Expected unmasked data frame"


def test_unmasked_frame_rejected_when_masked_expected():
    raw = bytes([0x81, 0x02]) + b"hi"
    with pytest.raises(DataFrameError) as info:
        DataFrame.read(io.BytesIO(raw), True)
    assert info.value.detail == "Expected masked data frame"


@pytest.mark.parametrize("size", [0, 125, 126, 65535, 65536])
@pytest.mark.parametrize("masked", [False, True])
def test_frame_size_matches_written_length(size, masked):
    frame = DataFrame(True, Opcode.BINARY, bytes(size))
    out = io.BytesIO()
    frame.write_to(out, masked)
    assert len(out.getvalue()) == frame.frame_size(masked)


def test_large_payload_round_trip():
    frame = DataFrame(True, Opcode.BINARY, bytes(range(256)) * 300)
    out = io.BytesIO()
    frame.write_to(out, False)
    assert DataFrame.read(io.BytesIO(out.getvalue()), False) == frame


def test_reserved_bits_written_and_read():
    frame = DataFrame(True, Opcode.BINARY, b"x", (True, False, True))
    out = io.BytesIO()
    frame.write_to(out, False)
    assert out.getvalue()[0] == 0xD2
    assert DataFrame.read(io.BytesIO(out.getvalue()), False).reserved == (
        True,
        False,
        True,
    )


def test_from_header_unmasks_body():
    header = DataFrameHeader(
        flags=DataFrameFlags.RSV1, opcode=2, mask=bytes([1, 2, 3, 4]), length=8
    )
    body = bytes([11, 9, 15, 9, 15, 13, 19, 21])
    frame = DataFrame.from_header(header, body, True)
    assert frame.data == bytes([10, 11, 12, 13, 14, 15, 16, 17])
    assert frame.finished is False
    assert frame.reserved == (True, False, False)
    assert frame.opcode is Opcode.BINARY


def test_control_frame_too_long_cannot_be_written():
    frame = DataFrame(True, Opcode.PING, bytes(200))
    with pytest.raises(DataFrameError):
        frame.write_to(io.BytesIO(), False)


def test_write_failure_becomes_websocket_error():
    class Broken:
        def write(self, data):
            raise OSError("boom")

    with pytest.raises(WebSocketIOError) as info:
        DataFrame(True, Opcode.TEXT, b"x").write_to(Broken(), False)
    assert isinstance(info.value.error, OSError)


def test_opcode_values():
    assert Opcode(9) is Opcode.PING
    assert Opcode.CLOSE.is_control
    assert not Opcode.TEXT.is_control
    with pytest.raises(ValueError):
        Opcode(16)


def test_take_payload_returns_data():
    frame = DataFrame(True, Opcode.BINARY, bytearray(b"abc"))
    assert frame.take_payload() == b"abc"
    assert frame.payload_size() == 3


def test_custom_frame_uses_default_writer():
    class Chunked(Frame):
        def is_last(self):
            return True

        def frame_opcode(self):
            return 2

        def reserved_bits(self):
            return (False, False, False)

        def payload_size(self):
            return 6

        def write_payload(self, writer):
            writer.write(b"abc")
            writer.write(b"def")

        def take_payload(self):
            return b"abcdef"

    out = io.BytesIO()
    Chunked().write_to(out, True)
    read = DataFrame.read(io.BytesIO(out.getvalue()), True)
    assert read.data == b"abcdef"
    assert read.opcode is Opcode.BINARY


def test_message_base_is_abstract():
    with pytest.raises(TypeError):
        MessageBase()