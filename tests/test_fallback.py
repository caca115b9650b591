"""Unit tests for the fallback bit-depth detectors."""
import io

import cv2
import numpy as np
import pytest

from jpeg_bitdepth.errors import JpegScanError, SofNotFoundError, TruncatedStreamError
from jpeg_bitdepth.fallback import (
    HeaderPrecisionDetector,
    OpenCVPrecisionDetector,
    find_sof,
    first_fragment,
    make_fallback,
    parse_sof,
    read_u8_from,
    read_u16_from,
)
from jpeg_bitdepth.primitives import PixelData, ResolverConfig

SOI = b"\xFF\xD8"
EOI = b"\xFF\xD9"

SOF1_12BIT = (
    b"\xFF\xC1"
    b"\x00\x11"      # Length: 17
    b"\x0C"          # Precision: 12 bits
    b"\x01\x00"      # Height: 256
    b"\x01\x80"      # Width: 384
    b"\x03"          # 3 components
    b"\x01\x22\x00"  # Y: 2x2, table 0
    b"\x02\x11\x01"  # Cb: 1x1, table 1
    b"\x03\x11\x01"  # Cr: 1x1, table 1
)


def encode_jpeg(height=8, width=8):
    ok, buf = cv2.imencode(".jpg", np.zeros((height, width), dtype=np.uint8))
    assert ok
    return buf.tobytes()


class TestParseSof:
    """Tests for parse_sof."""

    def test_parse_frame_header(self):
        """Test parsing a 12-bit three-component frame header."""
        f = io.BytesIO(SOF1_12BIT[2:])
        sof_info = parse_sof(f, 0xFFC1)

        assert sof_info.marker == 0xFFC1
        assert sof_info.precision == 12
        assert sof_info.height == 256
        assert sof_info.width == 384
        assert len(sof_info.components) == 3
        assert sof_info.components[0].component_id == 1
        assert sof_info.components[0].horizontal_sampling == 2
        assert sof_info.components[0].vertical_sampling == 2
        assert sof_info.components[2].quantization_table_id == 1
        assert f.tell() == len(SOF1_12BIT) - 2

    def test_truncated_frame_header(self):
        """Test a frame header cut off before its components."""
        f = io.BytesIO(SOF1_12BIT[2:10])
        with pytest.raises(TruncatedStreamError):
            parse_sof(f, 0xFFC1)


class TestFindSof:
    """Tests for the tolerant marker walk."""

    def test_plain_stream(self):
        """Test a well-formed stream with an APP0 segment."""
        f = io.BytesIO(SOI + b"\xFF\xE0\x00\x04\x00\x00" + SOF1_12BIT + EOI)
        assert find_sof(f).precision == 12

    def test_leading_garbage(self):
        """Test bytes before SOI."""
        f = io.BytesIO(b"\x00\x12\x34" + SOI + SOF1_12BIT)
        assert find_sof(f).precision == 12

    def test_stuffed_bytes_between_markers(self):
        """Test that 0xFF00 stuffing is stepped over."""
        f = io.BytesIO(SOI + b"\x12\x34\xFF\x00\x56" + SOF1_12BIT)
        assert find_sof(f).precision == 12

    def test_fill_bytes(self):
        """Test 0xFF fill bytes before a marker."""
        f = io.BytesIO(SOI + b"\xFF\xFF\xFF" + SOF1_12BIT)
        assert find_sof(f).precision == 12

    def test_unknown_marker_is_skipped(self):
        """Test an unknown marker that the marker scan rejects."""
        f = io.BytesIO(SOI + b"\xFF\xA0\x00\x00" + SOF1_12BIT)
        assert find_sof(f).precision == 12

    def test_restart_and_tem_markers(self):
        """Test that RST0 and TEM carry no length."""
        f = io.BytesIO(SOI + b"\xFF\xD0\xFF\x01" + SOF1_12BIT)
        assert find_sof(f).precision == 12

    def test_eoi_stops_the_walk(self):
        """Test that an SOF after EOI is not reached."""
        f = io.BytesIO(SOI + EOI + SOF1_12BIT)
        with pytest.raises(SofNotFoundError):
            find_sof(f)

    def test_empty_stream(self):
        """Test handling an empty stream."""
        with pytest.raises(SofNotFoundError):
            find_sof(io.BytesIO(b""))

    def test_truncated_segment_length(self):
        """Test a stream ending in the middle of a segment length."""
        with pytest.raises(TruncatedStreamError):
            find_sof(io.BytesIO(SOI + b"\xFF\xE0\x00"))

    def test_verbose_prints_markers(self, capsys):
        """Test that verbose mode prints every marker found."""
        find_sof(io.BytesIO(SOI + b"\xFF\xFE\x00\x03x" + SOF1_12BIT), verbose=True)
        out = capsys.readouterr().out
        assert "Found Start of Image (SOI)" in out
        assert "Found Comment (COM) with length 3 bytes" in out
        assert "SOF1 - Extended sequential DCT: precision 12, 384x256, 3 components" in out

    def test_silent_by_default(self, capsys):
        """Test that nothing is printed without verbose."""
        find_sof(io.BytesIO(SOI + SOF1_12BIT))
        assert capsys.readouterr().out == ""


class TestStreamReaders:
    """Tests for the file-object readers."""

    def test_read_u8_from(self):
        """Test read_u8_from advances the stream by one byte."""
        f = io.BytesIO(b"\x42\x43")
        assert read_u8_from(f) == 0x42
        assert f.tell() == 1

    def test_read_u16_from_big_endian(self):
        """Test read_u16_from is big-endian."""
        assert read_u16_from(io.BytesIO(b"\x12\x34")) == 0x1234

    def test_read_u8_from_truncated(self):
        """Test read_u8_from on an empty stream."""
        with pytest.raises(TruncatedStreamError):
            read_u8_from(io.BytesIO(b""))

    def test_read_u16_from_truncated(self):
        """Test read_u16_from with only one byte left."""
        with pytest.raises(TruncatedStreamError):
            read_u16_from(io.BytesIO(b"\x00"))


class TestHeaderPrecisionDetector:
    """Tests for HeaderPrecisionDetector."""

    def test_pixel_data(self):
        """Test that only the first fragment is read."""
        detector = HeaderPrecisionDetector()
        pixel_data = PixelData([SOI + SOF1_12BIT, SOI + b"\xFF\xC0\x00\x0B\x08"])
        assert detector.scan_header_for_precision(pixel_data) == 12

    def test_callable_with_bytes(self):
        """Test calling the detector with raw bytes."""
        assert HeaderPrecisionDetector()(SOI + SOF1_12BIT) == 12

    def test_real_jpeg(self):
        """Test a JPEG encoded by OpenCV."""
        assert HeaderPrecisionDetector()(encode_jpeg()) == 8

    def test_no_sof(self):
        """Test a stream without SOF."""
        with pytest.raises(SofNotFoundError):
            HeaderPrecisionDetector()(SOI + EOI)

    def test_no_fragments(self):
        """Test pixel data without fragments."""
        with pytest.raises(ValueError):
            HeaderPrecisionDetector()(PixelData())


class TestOpenCVPrecisionDetector:
    """Tests for OpenCVPrecisionDetector."""

    def test_8bit_jpeg(self):
        """Test an 8-bit JPEG encoded by OpenCV."""
        assert OpenCVPrecisionDetector()(encode_jpeg(16, 24)) == 8

    def test_pixel_data(self):
        """Test decoding the first fragment of pixel data."""
        detector = OpenCVPrecisionDetector()
        assert detector.scan_header_for_precision(PixelData([encode_jpeg()])) == 8

    def test_undecodable(self):
        """Test bytes OpenCV cannot decode."""
        with pytest.raises(JpegScanError):
            OpenCVPrecisionDetector()(b"\x00\x01\x02\x03")

    def test_empty(self):
        """Test an empty fragment."""
        with pytest.raises(JpegScanError):
            OpenCVPrecisionDetector()(b"")


class TestMakeFallback:
    """Tests for make_fallback."""

    def test_default_is_header(self):
        """Test the default configuration."""
        assert isinstance(make_fallback(ResolverConfig()), HeaderPrecisionDetector)

    def test_opencv(self):
        """Test selecting the OpenCV detector."""
        detector = make_fallback(ResolverConfig(fallback="opencv", verbose=True))
        assert isinstance(detector, OpenCVPrecisionDetector)
        assert detector.verbose

    def test_unknown(self):
        """Test an unknown fallback name."""
        with pytest.raises(ValueError):
            make_fallback(ResolverConfig(fallback="ijg"))


class TestFirstFragment:
    """Tests for first_fragment."""

    def test_bytes_like(self):
        """Test bytearray and memoryview input."""
        assert first_fragment(bytearray(b"\xFF\xD8")) == b"\xFF\xD8"
        assert first_fragment(memoryview(b"\xFF\xD8")) == b"\xFF\xD8"

    def test_bytes_like_fragments(self):
        """Test pixel data holding bytearray and memoryview fragments."""
        assert first_fragment(PixelData([bytearray(b"\xFF\xD8")])) == b"\xFF\xD8"
        assert first_fragment(PixelData([memoryview(SOI + SOF1_12BIT)])) == SOI + SOF1_12BIT
        assert HeaderPrecisionDetector()(PixelData([bytearray(SOI + SOF1_12BIT)])) == 12

    def test_only_first_fragment(self):
        """Test that later fragments are ignored."""
        assert first_fragment(PixelData([b"a", b"b"])) == b"a"
