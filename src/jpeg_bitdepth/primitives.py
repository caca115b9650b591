from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

# one compressed fragment
Fragment = Union[bytes, bytearray, memoryview]


class MarkerCategory(Enum):
    SOF = "sof"                        # precision lives 2 bytes after the code
    LENGTH_SKIP = "length_skip"        # 2-byte length follows, body is skipped
    ZERO_PAYLOAD = "zero_payload"      # marker code only
    RESERVED_CHECK = "reserved_check"  # anything else


@dataclass
class PixelData:
    # encapsulated pixel data: only fragments[0] is ever read
    fragments: List[Fragment] = field(default_factory=list)

    def first_fragment(self) -> Fragment:
        if not self.fragments:
            raise ValueError("Pixel data has no fragments")
        return self.fragments[0]


@dataclass
class ComponentInfo:
    component_id: int = 0
    horizontal_sampling: int = 0
    vertical_sampling: int = 0
    quantization_table_id: int = 0


@dataclass
class SofInfo:
    marker: int = 0
    precision: int = 0
    height: int = 0
    width: int = 0
    components: List[ComponentInfo] = field(default_factory=list)


@dataclass
class ScanResult:
    bit_depth: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.bit_depth is not None


@dataclass
class ResolverConfig:
    fallback: str = "header"  # "header" or "opencv"
    verbose: bool = False
