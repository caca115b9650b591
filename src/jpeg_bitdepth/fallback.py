"""Second-chance bit-depth detectors, used when the marker scan fails."""
from __future__ import annotations
import io
from typing import BinaryIO, Callable, Union

import cv2
import numpy as np

from .errors import JpegScanError, SofNotFoundError, TruncatedStreamError
from .marker import SOF_MARKERS, marker_info
from .primitives import ComponentInfo, PixelData, ResolverConfig, SofInfo

PixelSource = Union[PixelData, bytes, bytearray, memoryview]

# (pixel_data) -> bit depth
PrecisionDetector = Callable[[PixelSource], int]

MARKER_PREFIX = 0xFF
SOI_MARKER = 0xD8
EOI_MARKER = 0xD9
TEM_MARKER = 0x01


def first_fragment(pixel_data: PixelSource) -> bytes:
    if isinstance(pixel_data, PixelData):
        return bytes(pixel_data.first_fragment())
    return bytes(pixel_data)


def read_u8_from(f: BinaryIO) -> int:
    byte = f.read(1)
    if len(byte) != 1:
        raise TruncatedStreamError("Unexpected length while reading 1 byte", f.tell())
    return byte[0]


def read_u16_from(f: BinaryIO) -> int:
    bytes_read = f.read(2)
    if len(bytes_read) != 2:
        raise TruncatedStreamError("Unexpected length while reading 2 bytes", f.tell())
    return (bytes_read[0] << 8) | bytes_read[1]


def parse_sof(f: BinaryIO, marker: int) -> SofInfo:
    """Parse a frame header, starting at its length field."""
    read_u16_from(f)  # length
    sof_info = SofInfo(marker=marker)
    # Precision: 1 byte (bits per sample)
    sof_info.precision = read_u8_from(f)
    sof_info.height = read_u16_from(f)
    sof_info.width = read_u16_from(f)
    num_components = read_u8_from(f)

    # For each component: id, sampling (h << 4 | v), quantization table id
    for _ in range(num_components):
        component_id = read_u8_from(f)
        sampling = read_u8_from(f)
        quant_table_id = read_u8_from(f)
        sof_info.components.append(ComponentInfo(
            component_id=component_id,
            horizontal_sampling=(sampling >> 4) & 0x0F,
            vertical_sampling=sampling & 0x0F,
            quantization_table_id=quant_table_id,
        ))
    return sof_info


def find_sof(f: BinaryIO, verbose: bool = False) -> SofInfo:
    """
    Tolerant marker walk: bytes outside markers are stepped over one by one,
    so garbage, fill bytes and entropy-coded data do not stop the search.
    """
    while True:
        byte = f.read(1)
        if not byte:
            break  # End of stream

        if byte[0] != MARKER_PREFIX:
            continue  # Not a marker start

        marker_byte = f.read(1)
        if not marker_byte:
            break
        marker = marker_byte[0]

        if marker == 0x00:
            continue  # Stuffed byte, not a marker
        elif marker == MARKER_PREFIX:
            f.seek(-1, io.SEEK_CUR)  # fill byte, the next 0xFF may start a marker
            continue
        elif marker in (SOI_MARKER, TEM_MARKER) or 0xD0 <= marker <= 0xD7:
            if verbose:
                print(f"Found {marker_info(0xFF00 | marker)}")
        elif marker == EOI_MARKER:
            if verbose:
                print(f"Found {marker_info(0xFF00 | marker)}")
            break
        elif (0xFF00 | marker) in SOF_MARKERS:
            sof_info = parse_sof(f, 0xFF00 | marker)
            if verbose:
                print(f"Found {marker_info(sof_info.marker)}: precision {sof_info.precision}, "
                      f"{sof_info.width}x{sof_info.height}, {len(sof_info.components)} components")
            return sof_info
        else:
            length = read_u16_from(f)
            if verbose:
                print(f"Found {marker_info(0xFF00 | marker)} with length {length} bytes")
            # Skip segment body
            f.seek(max(length - 2, 0), io.SEEK_CUR)

    raise SofNotFoundError("Unable to determine bit depth: no JPEG SOF marker found", f.tell())


class HeaderPrecisionDetector:
    """Default fallback: tolerant header walk over the first fragment."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def scan_header_for_precision(self, pixel_data: PixelSource) -> int:
        with io.BytesIO(first_fragment(pixel_data)) as f:
            return find_sof(f, self.verbose).precision

    __call__ = scan_header_for_precision


class OpenCVPrecisionDetector:
    """
    Codec fallback: let OpenCV decode the fragment and report the sample
    width of the result (8 or 16). Slower and coarser than a header walk,
    but independent of our own parsing.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def scan_header_for_precision(self, pixel_data: PixelSource) -> int:
        buf = np.frombuffer(first_fragment(pixel_data), dtype=np.uint8)
        try:
            img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
        except cv2.error as e:
            raise JpegScanError(f"Unable to determine bit depth: {e}") from e
        if img is None:
            raise JpegScanError("Unable to determine bit depth: OpenCV could not decode the stream")
        if self.verbose:
            print(f"OpenCV decoded {img.shape} as {img.dtype}")
        return img.dtype.itemsize * 8

    __call__ = scan_header_for_precision


FALLBACKS = {
    "header": HeaderPrecisionDetector,
    "opencv": OpenCVPrecisionDetector,
}


def make_fallback(config: ResolverConfig) -> PrecisionDetector:
    try:
        detector_cls = FALLBACKS[config.fallback]
    except KeyError:
        raise ValueError(
            f"Unknown fallback {config.fallback!r}, expected one of {sorted(FALLBACKS)}"
        ) from None
    return detector_cls(verbose=config.verbose)
