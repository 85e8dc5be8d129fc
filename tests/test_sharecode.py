"""Tests for the sharecode module."""

import pytest

from turboloader.codec import encode
from turboloader.sharecode import (
    ShareCodeInfo,
    TrackFormat,
    classify,
    decode_v1n,
    decode_v3,
    extract_track_name,
    is_valid_track_data,
    percent_decode,
    process_track_data,
)

# "v3" + name length 4 ("EA") + "Loop" ("M92bwB") + track data
V3_LOOP = "v3EAM92bwBQ0yXkTfW8c"
V1N_WHIRLED = "v1nEgwhirled%20up%20boxBQABxyz"


class TestClassify:
    """Tests for format classification."""

    def test_native_payload(self):
        assert classify("PolyTrack1ABCDEF") is TrackFormat.NATIVE_PAYLOAD
        assert classify("PolyTrack24pdrABC") is TrackFormat.NATIVE_PAYLOAD

    def test_v3(self):
        assert classify(V3_LOOP) is TrackFormat.SHARE_CODE_V3

    def test_v1n(self):
        assert classify(V1N_WHIRLED) is TrackFormat.SHARE_CODE_V1N

    @pytest.mark.parametrize("text", ["", "v2abcdef", "v1abcdef", "polytrack1ABC", "hello world"])
    def test_unrecognized(self, text):
        assert classify(text) is TrackFormat.UNRECOGNIZED


class TestDecodeV3:
    """Tests for v3 share code decoding."""

    def test_decode_returns_sharecode_info(self):
        result = decode_v3(V3_LOOP)
        assert isinstance(result, ShareCodeInfo)
        assert result.display_name == "Loop"

    def test_decode_preserves_raw_code(self):
        result = decode_v3(V3_LOOP)
        assert result.share_code == V3_LOOP

    def test_decode_utf8_name(self):
        # length 2 ("CA") + "é" ("DnK")
        result = decode_v3("v3CADnKrest0fTrack")
        assert result.display_name == "é"

    def test_decode_built_from_codec(self):
        code = "v3" + encode(bytes([4])) + encode(b"Loop") + "Body"
        assert decode_v3(code).display_name == "Loop"

    def test_invalid_utf8_name_is_replaced(self):
        # length 2 ("CA") + bytes FF FE ("f3f")
        result = decode_v3("v3CAf3fBody")
        assert result is not None
        assert result.display_name == "\ufffd\ufffd"

    def test_missing_length_returns_none(self):
        assert decode_v3("v3") is None

    def test_invalid_length_chars_returns_none(self):
        assert decode_v3("v3!!abcdef") is None

    def test_invalid_name_chars_returns_none(self):
        assert decode_v3("v3EA-_.~abcd") is None

    def test_wrong_format_returns_none(self):
        assert decode_v3(V1N_WHIRLED) is None

    def test_deterministic(self):
        assert decode_v3(V3_LOOP) == decode_v3(V3_LOOP)


class TestDecodeV1n:
    """Tests for v1n share code decoding."""

    def test_decode_name(self):
        result = decode_v1n(V1N_WHIRLED)
        assert result.display_name == "whirled up box"
        assert result.share_code == V1N_WHIRLED

    def test_invalid_length_returns_none(self):
        assert decode_v1n("v1n!!something") is None

    def test_malformed_escape_returns_none(self):
        # length 18, name slice contains "%zz"
        assert decode_v1n("v1nEgbad%zzname_is_longBQAB") is None

    def test_wrong_format_returns_none(self):
        assert decode_v1n(V3_LOOP) is None

    def test_deterministic(self):
        assert decode_v1n(V1N_WHIRLED) == decode_v1n(V1N_WHIRLED)


class TestPercentDecode:
    def test_plain(self):
        assert percent_decode("abc") == "abc"

    def test_escapes(self):
        assert percent_decode("a%20b%C3%A9") == "a bé"

    def test_malformed(self):
        with pytest.raises(ValueError):
            percent_decode("100%")


class TestProcessTrackData:
    """Tests for turning candidate strings into records."""

    def test_native_payload(self):
        record = process_track_data("PolyTrack1ABCDEFGH")
        assert record.raw_payload == "PolyTrack1ABCDEFGH"
        assert record.share_code is None
        assert record.display_name is None

    def test_whitespace_removed(self):
        record = process_track_data("PolyTrack1 ABCD\nEFGH")
        assert record.raw_payload == "PolyTrack1ABCDEFGH"

    def test_share_code_with_name(self):
        record = process_track_data(V3_LOOP)
        assert record.share_code == V3_LOOP
        assert record.display_name == "Loop"
        assert record.raw_payload is None

    def test_share_code_name_failure_still_accepted(self):
        record = process_track_data("v3!!abcdefghij")
        assert record is not None
        assert record.share_code == "v3!!abcdefghij"
        assert record.display_name is None

    def test_too_short(self):
        assert process_track_data("PolyTrack") is None

    def test_unrecognized(self):
        assert process_track_data("not a track at all") is None


class TestValidation:
    def test_is_valid_track_data(self):
        assert is_valid_track_data("PolyTrack1ABCDEF") is True
        assert is_valid_track_data(V1N_WHIRLED) is True
        assert is_valid_track_data("") is False
        assert is_valid_track_data(None) is False
        assert is_valid_track_data("v3short") is False
        assert is_valid_track_data("garbage-garbage") is False

    def test_extract_track_name(self):
        assert extract_track_name(V3_LOOP) == "Loop"
        assert extract_track_name(V1N_WHIRLED) == "whirled up box"
        assert extract_track_name("PolyTrack1ABCDEF") is None
