# ---------------------------------------------------------------------
# |marker value      |category      |description                        |
# ---------------------------------------------------------------------
# |0xFFC0-C3,C5-C7   |SOF           | start of frame, Huffman coding    |
# |0xFFC9-CB,CD-CF   |SOF           | start of frame, arithmetic coding |
# |0xFFC4,C8,CC      |LENGTH_SKIP   | DHT, JPG extension, DAC           |
# |0xFFDA-DF         |LENGTH_SKIP   | SOS, DQT, DNL, DRI, DHP, EXP      |
# |0xFFE0-EF         |LENGTH_SKIP   | APPn                              |
# |0xFFF0-FD, 0xFFFE |LENGTH_SKIP   | JPGn, COM                         |
# |0xFFD0-D9, 0xFF01 |ZERO_PAYLOAD  | RSTm, SOI, EOI, TEM               |
# ---------------------------------------------------------------------
# Segment lengths count the 2 length bytes themselves, so the body that
# follows the length field is (length - 2) bytes long.
# Anything outside the table is checked against the reserved range
# 0xFF03..0xFFBF by reading the next two raw bytes. No length is skipped
# for those, unlike the full marker table in T.81.
from __future__ import annotations
from typing import Dict, Tuple

from .errors import JpegSyntaxError, SofNotFoundError, TruncatedStreamError
from .primitives import MarkerCategory, ScanResult

SOF_MARKERS = (
    0xFFC0, 0xFFC1, 0xFFC2, 0xFFC3,
    0xFFC5, 0xFFC6, 0xFFC7,
    0xFFC9, 0xFFCA, 0xFFCB,
    0xFFCD, 0xFFCE, 0xFFCF,
)
LENGTH_SKIP_MARKERS = (
    (0xFFC4, 0xFFC8, 0xFFCC)
    + tuple(range(0xFFDA, 0xFFE0))
    + tuple(range(0xFFE0, 0xFFF0))
    + tuple(range(0xFFF0, 0xFFFE))
    + (0xFFFE,)
)
ZERO_PAYLOAD_MARKERS = tuple(range(0xFFD0, 0xFFDA)) + (0xFF01,)

MARKER_CATEGORIES: Dict[int, MarkerCategory] = {}
MARKER_CATEGORIES.update((m, MarkerCategory.SOF) for m in SOF_MARKERS)
MARKER_CATEGORIES.update((m, MarkerCategory.LENGTH_SKIP) for m in LENGTH_SKIP_MARKERS)
MARKER_CATEGORIES.update((m, MarkerCategory.ZERO_PAYLOAD) for m in ZERO_PAYLOAD_MARKERS)

SOF_NAMES = {
    0xC0: "Baseline DCT",
    0xC1: "Extended sequential DCT",
    0xC2: "Progressive DCT",
    0xC3: "Lossless sequential",
    0xC5: "Differential sequential DCT",
    0xC6: "Differential progressive DCT",
    0xC7: "Differential lossless",
    0xC9: "Extended sequential DCT, arithmetic",
    0xCA: "Progressive DCT, arithmetic",
    0xCB: "Lossless, arithmetic",
    0xCD: "Differential sequential DCT, arithmetic",
    0xCE: "Differential progressive DCT, arithmetic",
    0xCF: "Differential lossless, arithmetic",
}

NAMED_MARKERS = {
    0xC4: "Define Huffman Table (DHT)",
    0xC8: "JPEG extension (JPG)",
    0xCC: "Define Arithmetic Coding (DAC)",
    0xD8: "Start of Image (SOI)",
    0xD9: "End of Image (EOI)",
    0xDA: "Start of Scan (SOS)",
    0xDB: "Define Quantization Table (DQT)",
    0xDC: "Define Number of Lines (DNL)",
    0xDD: "Define Restart Interval (DRI)",
    0xDE: "Define Hierarchical Progression (DHP)",
    0xDF: "Expand Reference Components (EXP)",
    0xFE: "Comment (COM)",
    0x01: "Temporary (TEM)",
}


def classify_marker(marker: int) -> MarkerCategory:
    return MARKER_CATEGORIES.get(marker, MarkerCategory.RESERVED_CHECK)


def marker_info(marker: int) -> str:
    """Readable name of a 16-bit marker code, e.g. 0xFFC2 -> 'SOF2 - Progressive DCT'."""
    low = marker & 0xFF
    if (marker >> 8) != 0xFF:
        return "Unknown Marker"
    if low in SOF_NAMES:
        return f"SOF{low - 0xC0} - {SOF_NAMES[low]}"
    if low in NAMED_MARKERS:
        return NAMED_MARKERS[low]
    if 0xD0 <= low <= 0xD7:
        return f"RST{low - 0xD0}"
    if 0xE0 <= low <= 0xEF:
        return f"APP{low - 0xE0}"
    if 0xF0 <= low <= 0xFD:
        return f"JPG{low - 0xF0}"
    if 0x02 < low <= 0xBF:
        return "Reserved (RES)"
    return "Unknown Marker"


def read_u8(data: bytes, offset: int) -> Tuple[int, int]:
    if offset + 1 > len(data):
        raise TruncatedStreamError("Unexpected length while reading 1 byte", offset)
    return data[offset], offset + 1


def read_u16(data: bytes, offset: int) -> Tuple[int, int]:
    if offset + 2 > len(data):
        raise TruncatedStreamError("Unexpected length while reading 2 bytes", offset)
    return (data[offset] << 8) | data[offset + 1], offset + 2


def skip(data: bytes, offset: int, count: int) -> int:
    # may land past the end; the scan loop then stops on its own
    return offset + count


def _read_sof_precision(data: bytes, offset: int) -> int:
    # frame header length is not needed
    offset = skip(data, offset, 2)
    precision, _ = read_u8(data, offset)
    return precision


def _skip_segment(data: bytes, offset: int, marker: int) -> int:
    length, offset = read_u16(data, offset)
    if length < 2:
        raise JpegSyntaxError(
            f"Segment length {length} too short for {marker_info(marker)}", offset - 2
        )
    return skip(data, offset, length - 2)


def _check_reserved(data: bytes, offset: int, marker: int) -> int:
    start = offset
    b1, offset = read_u8(data, offset)
    b2, offset = read_u8(data, offset)
    if b1 == 0xFF and 0x02 < b2 <= 0xBF:
        return offset
    raise JpegSyntaxError(
        f"Unable to determine bit depth: JPEG syntax error at marker {marker:#06x}", start - 2
    )


def scan_for_bit_depth(data: bytes) -> int:
    """
    Walk the marker stream of one JPEG fragment and return the sample
    precision of the first Start-Of-Frame segment.

    Args:
        data: the compressed bytes, starting at a marker (normally SOI)

    Returns:
        precision byte of the frame header (bits per sample)

    Raises:
        JpegSyntaxError: an unknown, non-reserved marker was met
        SofNotFoundError: the stream ended without an SOF marker
        TruncatedStreamError: a marker, length or precision read ran off the end
    """
    offset = 0
    length = len(data)
    while offset < length:
        marker, offset = read_u16(data, offset)
        category = classify_marker(marker)

        if category is MarkerCategory.SOF:
            return _read_sof_precision(data, offset)
        elif category is MarkerCategory.LENGTH_SKIP:
            offset = _skip_segment(data, offset, marker)
        elif category is MarkerCategory.ZERO_PAYLOAD:
            continue
        else:
            offset = _check_reserved(data, offset, marker)

    raise SofNotFoundError("Unable to determine bit depth: no JPEG SOF marker found", offset)


def try_scan(data: bytes) -> ScanResult:
    """Run scan_for_bit_depth and fold its outcome into a ScanResult."""
    try:
        return ScanResult(bit_depth=scan_for_bit_depth(data))
    except Exception as e:
        return ScanResult(error=e)
