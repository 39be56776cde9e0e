"""Fixed-size raw RGB frame reading from a byte stream.

Frames arrive as ``width * height * 3`` bytes, row-major, one R, G, B
triplet per pixel, with no container framing between them. A pipe may
hand over any number of bytes per read, so a frame is only complete once
the whole buffer has been filled.
"""

import logging
from dataclasses import dataclass

import numpy as np

BYTES_PER_PIXEL = 3

logger = logging.getLogger("ascii_video.frames")


@dataclass(frozen=True)
class Geometry:
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Geometry must be positive, got {self.width}x{self.height}")

    @property
    def frame_size(self):
        return self.width * self.height * BYTES_PER_PIXEL

    def __str__(self):
        return f"{self.width}x{self.height}"


class EndOfStream(EOFError):
    """The stream ran dry before a full frame could be assembled."""

    def __init__(self, bytes_read, expected):
        self.bytes_read = bytes_read
        self.expected = expected
        if bytes_read:
            msg = f"stream ended mid-frame ({bytes_read}/{expected} bytes)"
        else:
            msg = "stream ended on a frame boundary"
        super().__init__(msg)

    @property
    def truncated(self):
        return self.bytes_read > 0


def fill_buffer(stream, view):
    """Read into ``view`` until it is full or the stream is exhausted.

    Returns the number of bytes accumulated. Every pass either advances
    the fill position or stops, so the loop is bounded by ``len(view)``.
    """
    filled = 0
    total = len(view)
    while filled < total:
        count = stream.readinto(view[filled:])
        if not count:
            break
        filled += count
    return filled


class FrameReader:
    """Reads one pixel grid at a time from a raw rgb24 stream.

    The returned array is a view over a single reused buffer, valid until
    the next call to :meth:`read_frame`.
    """

    def __init__(self, stream, geometry):
        self.stream = stream
        self.geometry = geometry
        self._buffer = bytearray(geometry.frame_size)
        self._view = memoryview(self._buffer)
        self._grid = np.frombuffer(self._buffer, dtype=np.uint8).reshape(
            geometry.height, geometry.width, BYTES_PER_PIXEL)
        self.frames_read = 0

    def read_frame(self):
        expected = self.geometry.frame_size
        try:
            filled = fill_buffer(self.stream, self._view)
        except (OSError, ValueError) as e:
            # ValueError covers reads on a pipe closed during teardown
            logger.debug("frame read failed: %s", e)
            raise EndOfStream(0, expected) from e
        if filled < expected:
            raise EndOfStream(filled, expected)
        self.frames_read += 1
        return self._grid


def read_frame(stream, geometry):
    """Read a single frame into a fresh array; see :class:`FrameReader`."""
    return FrameReader(stream, geometry).read_frame().copy()
