from __future__ import annotations
from typing import Optional

from .fallback import PixelSource, PrecisionDetector, first_fragment, make_fallback
from .marker import try_scan
from .primitives import ResolverConfig, ScanResult


class BitDepthResolver:
    """
    Bit depth of encapsulated JPEG pixel data.

    The marker scan runs first. If it fails for any reason the fallback
    detector gets one attempt with the original pixel data, and whatever it
    returns or raises is the final outcome.
    """

    def __init__(self, fallback: Optional[PrecisionDetector] = None,
                 config: Optional[ResolverConfig] = None):
        self.config = config if config is not None else ResolverConfig()
        self.fallback = fallback if fallback is not None else make_fallback(self.config)
        self.last_primary_result: Optional[ScanResult] = None

    def scan_primary(self, pixel_data: PixelSource) -> ScanResult:
        try:
            data = first_fragment(pixel_data)
        except Exception as e:
            return ScanResult(error=e)
        return try_scan(data)

    def resolve(self, pixel_data: PixelSource) -> int:
        result = self.scan_primary(pixel_data)
        self.last_primary_result = result
        if result.ok:
            return result.bit_depth

        if self.config.verbose:
            kind = getattr(result.error, "kind", type(result.error).__name__)
            print(f"Marker scan failed ({kind}): {result.error}; trying fallback")
        return self.fallback(pixel_data)


def resolve_bit_depth(pixel_data: PixelSource,
                      fallback: Optional[PrecisionDetector] = None,
                      config: Optional[ResolverConfig] = None) -> int:
    return BitDepthResolver(fallback, config).resolve(pixel_data)
