"""
Resolution metadata for encoded JPEG output.

Print services read the physical resolution from the JFIF APP0 segment::

    FF E0  <len:2>  "JFIF\\0"  <major:1> <minor:1>  <units:1>  <Xdensity:2> <Ydensity:2>  <Xthumb:1> <Ythumb:1>

``write_density_header`` patches that segment in place (units = inches,
both densities = dpi, big-endian) or splices a fresh one right after the
SOI marker when the file has none.  Only the bytes of the APP0 segment
change; the compressed image data is never touched.

When the stream has no SOI marker at all, ``embed_resolution`` falls back
to decoding the image and re-encoding it with an EXIF resolution record
(built with piexif).  If that fails too, the original bytes are returned
unchanged and a warning is logged: missing metadata never makes an output
unusable.
"""

import io
import logging
import struct
from dataclasses import dataclass

import piexif
from PIL import Image

from print_size_tool.config import JPEG_QUALITY, SOFTWARE_NAME, TARGET_DPI
from print_size_tool.errors import MetadataEmbedError

logger = logging.getLogger(__name__)

SOI = b"\xff\xd8"
APP0 = b"\xff\xe0"
JFIF_IDENT = b"JFIF\x00"

UNITS_NONE = 0
UNITS_INCHES = 1
UNITS_CM = 2

# EXIF ResolutionUnit value for inches
_EXIF_UNIT_INCHES = 2

# Offsets inside an APP0 segment, counted from its FF E0 marker
_UNITS_OFFSET = 11
_SEGMENT_MIN_LENGTH = 16

# Markers without a length field
_STANDALONE_MARKERS = {0x01, *range(0xD0, 0xD8)}
_SOS = 0xDA
_EOI = 0xD9


@dataclass(frozen=True)
class DensityHeader:
    """Parsed JFIF APP0 segment."""
    offset: int
    version: tuple[int, int]
    units: int
    x_density: int
    y_density: int


def _check_dpi(dpi: int) -> None:
    if not isinstance(dpi, int) or not 1 <= dpi <= 0xFFFF:
        raise ValueError(f"dpi must be an integer in 1..65535, got {dpi!r}")


def find_marker(data: bytes, marker: bytes, start: int = 0) -> int:
    """Index of the first two-byte *marker* at or after *start*, or -1."""
    return data.find(marker, start)


def _iter_segments(data: bytes, pos: int):
    """
    Yield ``(offset, marker_byte, segment_length)`` for the header segments
    that follow SOI, stopping at SOS, EOI or the first malformed segment.
    """
    size = len(data)
    while pos + 1 < size:
        if data[pos] != 0xFF:
            return
        marker = data[pos + 1]
        if marker == 0xFF:
            # Fill byte
            pos += 1
            continue
        if marker in _STANDALONE_MARKERS:
            pos += 2
            continue
        if marker in (_SOS, _EOI) or pos + 4 > size:
            return
        (length,) = struct.unpack_from(">H", data, pos + 2)
        if length < 2 or pos + 2 + length > size:
            return
        yield pos, marker, length
        pos += 2 + length


def _find_jfif_segment(data: bytes, soi: int) -> int:
    for offset, marker, length in _iter_segments(data, soi + 2):
        if (
            marker == APP0[1]
            and length >= _SEGMENT_MIN_LENGTH
            and data[offset + 4:offset + 9] == JFIF_IDENT
        ):
            return offset
    return -1


def read_density_header(data: bytes) -> DensityHeader | None:
    """Parse the JFIF density fields, or None if the stream has no JFIF segment."""
    soi = find_marker(data, SOI)
    if soi < 0:
        return None
    offset = _find_jfif_segment(data, soi)
    if offset < 0:
        return None
    major, minor, units, x_density, y_density = struct.unpack_from(">BBBHH", data, offset + 9)
    return DensityHeader(offset, (major, minor), units, x_density, y_density)


def build_jfif_segment(dpi: int) -> bytes:
    """A minimal JFIF 1.1 APP0 segment declaring *dpi* in inches, no thumbnail."""
    _check_dpi(dpi)
    return APP0 + struct.pack(">H", _SEGMENT_MIN_LENGTH) + JFIF_IDENT + struct.pack(
        ">BBBHHBB", 1, 1, UNITS_INCHES, dpi, dpi, 0, 0,
    )


def write_density_header(data: bytes, dpi: int) -> bytes | None:
    """
    Return a copy of *data* whose JFIF segment declares *dpi* in inches.

    Returns None when the stream has no SOI marker.
    """
    _check_dpi(dpi)
    soi = find_marker(data, SOI)
    if soi < 0:
        return None

    offset = _find_jfif_segment(data, soi)
    if offset >= 0:
        patched = bytearray(data)
        struct.pack_into(">BHH", patched, offset + _UNITS_OFFSET, UNITS_INCHES, dpi, dpi)
        return bytes(patched)

    # No JFIF segment: splice one in right after SOI
    insert_at = soi + len(SOI)
    return data[:insert_at] + build_jfif_segment(dpi) + data[insert_at:]


def embed_exif_resolution(data: bytes, dpi: int) -> bytes:
    """Decode, attach an EXIF resolution record, and re-encode as JPEG."""
    _check_dpi(dpi)
    exif = {
        "0th": {
            piexif.ImageIFD.XResolution: (dpi, 1),
            piexif.ImageIFD.YResolution: (dpi, 1),
            piexif.ImageIFD.ResolutionUnit: _EXIF_UNIT_INCHES,
            piexif.ImageIFD.Software: SOFTWARE_NAME.encode("ascii"),
        },
    }
    try:
        exif_bytes = piexif.dump(exif)
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            out = io.BytesIO()
            img.convert("RGB").save(out, "JPEG", quality=JPEG_QUALITY, exif=exif_bytes)
    except (OSError, ValueError) as exc:
        raise MetadataEmbedError(f"EXIF resolution embedding failed: {exc}") from exc
    return out.getvalue()


def embed_resolution(data: bytes, dpi: int = TARGET_DPI) -> bytes:
    """
    Declare *dpi* as the physical resolution of an encoded JPEG.

    Never raises for malformed image data: if neither the JFIF patch nor the
    EXIF fallback works, the original bytes are returned.
    """
    _check_dpi(dpi)
    patched = write_density_header(data, dpi)
    if patched is not None:
        logger.debug("JFIF density set to %d DPI", dpi)
        return patched

    logger.warning("No start-of-image marker found; falling back to EXIF resolution")
    try:
        result = embed_exif_resolution(data, dpi)
    except MetadataEmbedError as exc:
        logger.warning("Could not embed %d DPI metadata, keeping original bytes: %s", dpi, exc)
        return data
    logger.debug("EXIF resolution set to %d DPI", dpi)
    return result
