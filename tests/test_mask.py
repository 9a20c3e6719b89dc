import io

from sockframe.mask import Masker, gen_mask, mask_data


def test_mask_data():
    key = bytes([1, 2, 3, 4])
    original = bytes([10, 11, 12, 13, 14, 15, 16, 17])
    expected = bytes([11, 9, 15, 9, 15, 13, 19, 21])
    obtained = mask_data(key, original)
    reversed_ = mask_data(key, obtained)
    assert reversed_ == original
    assert obtained == expected


def test_mask_data_empty():
    assert mask_data(bytes([1, 2, 3, 4]), b"") == b""


def test_gen_mask_length():
    assert len(gen_mask()) == 4


def test_masker_matches_mask_data_across_chunks():
    key = bytes([1, 2, 3, 4])
    payload = b"The quick brown fox jumps over the lazy dog"
    sink = io.BytesIO()
    masker = Masker(key, sink)
    masker.write(payload[:5])
    masker.write(payload[5:6])
    masker.write(payload[6:])
    assert sink.getvalue() == mask_data(key, payload)


def test_masker_returns_written_count():
    sink = io.BytesIO()
    masker = Masker(bytes([9, 9, 9, 9]), sink)
    assert masker.write(b"abc") == 3


def test_masker_flush_delegates():
    class Sink:
        def __init__(self):
            self.flushed = False

        def write(self, data):
            return len(data)

        def flush(self):
            self.flushed = True

    sink = Sink()
    Masker(bytes(4), sink).flush()
    assert sink.flushed is True