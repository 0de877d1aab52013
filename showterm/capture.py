"""
Capture backends for showterm

'script' (util-linux) writes the output dump and timing file the server wants
directly, but behaves differently from platform to platform. So we run it
once on a throwaway command and only trust it if the result looks sane;
otherwise we fall back to ttyrec.
"""
import enum
import logging
import os
import re
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence

logger = logging.getLogger("showterm.capture")

PROBE_COMMAND = ['echo', 'foo']
PROBE_MARKER = 'foo'
TIMING_LINE = re.compile(r'[0-9]')


class CaptureStrategy(enum.Enum):
    PRIMARY = "script"
    FALLBACK = "ttyrec"


def script_binary(environ: Mapping[str, str] = os.environ) -> str:
    return environ.get('SHOWTERM_SCRIPT', 'script')


def ttyrec_binary(environ: Mapping[str, str] = os.environ) -> str:
    return environ.get('SHOWTERM_TTYREC', 'ttyrec')


def shell_join(cmd: Sequence[str]) -> str:
    """Quote a command so it survives being handed to a shell as one argument"""
    return " ".join(shlex.quote(arg) for arg in cmd)


def script_command(scriptfile, cmd: Optional[Sequence[str]] = None,
                   binary: Optional[str] = None) -> List[str]:
    """
    Arguments for 'script -q -t'

    The timing data goes to stderr, so the caller redirects stderr into the
    timing file.
    """
    args = [binary or script_binary()]
    if cmd:
        args += ['-c', shell_join(cmd)]
    args += ['-q', '-t', str(scriptfile)]
    return args


def ttyrec_command(scriptfile, cmd: Optional[Sequence[str]] = None,
                   binary: Optional[str] = None) -> List[str]:
    """Arguments for ttyrec, which writes timing and output into one file"""
    args = [binary or ttyrec_binary()]
    if cmd:
        args += ['-e', shell_join(cmd)]
    args.append(str(scriptfile))
    return args


@contextmanager
def temp_files(count: int, prefix: str = 'showterm') -> Iterator[List[Path]]:
    """Create empty temporary files which are removed however the block exits"""
    paths = []
    try:
        for _ in range(count):
            fd, name = tempfile.mkstemp(prefix=prefix)
            os.close(fd)
            paths.append(Path(name))
        yield paths
    finally:
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                pass


def run_script(scriptfile: Path, timingfile: Path, cmd: Optional[Sequence[str]] = None,
               binary: Optional[str] = None, stdout=None) -> None:
    """Run 'script' with stderr captured into timingfile; the exit status is ignored"""
    args = script_command(scriptfile, cmd, binary)
    logger.info(f"Running: {' '.join(args)} 2>{timingfile}")
    with open(timingfile, 'wb') as timing:
        subprocess.run(args, stdout=stdout, stderr=timing)


def script_output_looks_sane(script_output: str, timing_output: str) -> bool:
    first_line = timing_output.splitlines()[0] if timing_output else ''
    return PROBE_MARKER in script_output and bool(TIMING_LINE.match(first_line))


def select_strategy(binary: Optional[str] = None) -> CaptureStrategy:
    """
    Decide whether 'script' can be trusted on this machine

    Any failure to run it, or output that doesn't look like a marker plus a
    timing line, means ttyrec is used instead.
    """
    with temp_files(2) as (scriptfile, timingfile):
        try:
            run_script(scriptfile, timingfile, PROBE_COMMAND, binary,
                       stdout=subprocess.DEVNULL)
        except OSError as e:
            logger.info(f"script is unavailable ({e}), falling back to ttyrec")
            return CaptureStrategy.FALLBACK

        script_output = scriptfile.read_text(errors='replace')
        timing_output = timingfile.read_text(errors='replace')

    if script_output_looks_sane(script_output, timing_output):
        logger.info("script works, using it to record")
        return CaptureStrategy.PRIMARY

    logger.info(f"script output looks wrong ({timing_output[:40]!r}), falling back to ttyrec")
    return CaptureStrategy.FALLBACK
