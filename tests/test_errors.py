import pytest

from sockframe.errors import (
    DataFrameError,
    NoDataAvailable,
    ProtocolError,
    Utf8Error,
    WebSocketError,
    WebSocketIOError,
)


def _decode_failure():
    return UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")


@pytest.mark.parametrize(
    ("factory", "expected"),
    [
        (lambda: ProtocolError("detail"), "WebSocketError: WebSocket protocol error"),
        (lambda: DataFrameError("detail"), "WebSocketError: WebSocket data frame error"),
        (lambda: NoDataAvailable(), "WebSocketError: No data available"),
        (lambda: WebSocketIOError(OSError("boom")), "WebSocketError: I/O failure"),
        (lambda: Utf8Error(_decode_failure()), "WebSocketError: UTF-8 failure"),
    ],
)
def test_all_errors_share_base(factory, expected):
    err = factory()
    with pytest.raises(WebSocketError) as info:
        raise err
    assert info.value is err
    assert str(info.value) == expected


def test_protocol_error_message_and_detail():
    err = ProtocolError("No dataframes provided")
    assert str(err) == "WebSocketError: WebSocket protocol error"
    assert err.detail == "No dataframes provided"


def test_dataframe_error_message_and_detail():
    err = DataFrameError("Invalid data frame opcode")
    assert str(err) == "WebSocketError: WebSocket data frame error"
    assert err.detail == "Invalid data frame opcode"


def test_no_data_available_message():
    assert str(NoDataAvailable()) == "WebSocketError: No data available"


def test_io_error_wraps_cause():
    cause = ConnectionResetError("dropped")
    err = WebSocketIOError(cause)
    assert err.error is cause
    assert err.__cause__ is cause
    assert str(err) == "WebSocketError: I/O failure"


def test_utf8_error_wraps_decode_failure():
    with pytest.raises(UnicodeDecodeError) as info:
        b"\xff\xfe".decode("utf-8")
    err = Utf8Error(info.value)
    assert err.error is info.value
    assert str(err) == "WebSocketError: UTF-8 failure"


def test_catch_as_base():
    err = ProtocolError("Unsupported opcode received")
    with pytest.raises(WebSocketError) as info:
        raise err
    assert info.value is err
    assert info.value.detail == "Unsupported opcode received"
    assert str(info.value) == "WebSocketError: WebSocket protocol error"