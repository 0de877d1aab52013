"""
ttyrec to script conversion for showterm

ttyrec writes one binary file made of frames:

    seconds (uint32 LE) | microseconds (uint32 LE) | length (uint32 LE) | payload

The server only understands the two files written by 'script -t', an output
dump plus a timing file of "<delay> <bytes>" lines, so recordings made with
ttyrec are converted before upload.
"""
import struct
from typing import Iterator, NamedTuple, Tuple

from showterm.errors import MalformedRecordingError

HEADER = struct.Struct('<III')

CONVERTED_BANNER = b"Converted from ttyrecord\n"


class Frame(NamedTuple):
    seconds: int
    microseconds: int
    payload: bytes


def iter_frames(ttyrecord: bytes) -> Iterator[Frame]:
    """Yield every frame of a ttyrec recording in order"""
    if len(ttyrecord) < HEADER.size:
        raise MalformedRecordingError(f"Invalid ttyrecord: {ttyrecord!r}")

    pos = 0
    while pos < len(ttyrecord):
        if len(ttyrecord) - pos < HEADER.size:
            raise MalformedRecordingError(
                f"Truncated ttyrecord: partial header at byte {pos}"
            )
        sec, usec, length = HEADER.unpack_from(ttyrecord, pos)
        start = pos + HEADER.size
        end = start + length
        if end > len(ttyrecord):
            raise MalformedRecordingError(
                f"Truncated ttyrecord: frame at byte {pos} wants {length} bytes, "
                f"{len(ttyrecord) - start} left"
            )
        yield Frame(sec, usec, ttyrecord[start:end])
        pos = end


def convert(ttyrecord: bytes) -> Tuple[bytes, str]:
    """
    Convert a ttyrec recording into (scriptfile, timingfile)

    The first frame's delay is measured against its own timestamp, so it is
    always 0.0. Delays are not clamped: a clock that steps backwards gives a
    negative delay, exactly as recorded.
    """
    script = bytearray(CONVERTED_BANNER)
    timing = []
    prev_sec = prev_usec = None

    for frame in iter_frames(ttyrecord):
        if prev_sec is None:
            prev_sec, prev_usec = frame.seconds, frame.microseconds
        delay = (frame.seconds - prev_sec) + (frame.microseconds - prev_usec) * 0.000001
        prev_sec, prev_usec = frame.seconds, frame.microseconds

        timing.append(f"{delay} {len(frame.payload)}\n")
        script += frame.payload

    return bytes(script), "".join(timing)
