class JpegScanError(ValueError):
    """Base error for a failed bit-depth scan. ``kind`` tells the cases apart."""

    kind = "scan"

    def __init__(self, message: str, offset: int = -1):
        super().__init__(message)
        self.offset = offset


class JpegSyntaxError(JpegScanError):
    """The stream holds a marker sequence that is not valid JPEG."""

    kind = "syntax"


class SofNotFoundError(JpegScanError):
    """The whole stream was walked without meeting a Start-Of-Frame marker."""

    kind = "not_found"


class TruncatedStreamError(JpegScanError, IOError):
    """A read ran past the end of the buffer."""

    kind = "truncated"
