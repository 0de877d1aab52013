#!/usr/bin/env python3
"""
Session recording module for showterm
Records a terminal session with 'script' or ttyrec and returns the
scriptfile/timingfile pair the server expects
"""
import logging
import subprocess
from typing import Optional, Sequence

from pydantic import BaseModel

from showterm.capture import (
    CaptureStrategy,
    run_script,
    select_strategy,
    temp_files,
    ttyrec_command,
)
from showterm.errors import CaptureInvocationError
from showterm.terminal import TerminalDimensions, terminal_size
from showterm import ttyrec

logger = logging.getLogger("showterm.recorder")


class CanonicalSession(BaseModel):
    script: bytes
    timing: str
    strategy: CaptureStrategy
    dimensions: TerminalDimensions = TerminalDimensions()


class SessionRecorder:
    def __init__(self, strategy: Optional[CaptureStrategy] = None,
                 script_binary: Optional[str] = None, ttyrec_binary: Optional[str] = None):
        self.strategy = strategy
        self.script_binary = script_binary
        self.ttyrec_binary = ttyrec_binary

    def record(self, cmd: Optional[Sequence[str]] = None) -> CanonicalSession:
        """
        Record a terminal session.

        If a command is given it is run, otherwise the user's login shell.
        The child shares our terminal, and the temporary capture files are
        gone by the time this returns, whether it succeeds or not.
        """
        strategy = self.strategy or select_strategy(self.script_binary)
        dimensions = terminal_size()
        logger.info(f"Recording {list(cmd) if cmd else 'login shell'} with {strategy.value} "
                    f"at {dimensions.columns}x{dimensions.rows}")

        if strategy is CaptureStrategy.PRIMARY:
            script, timing = self.record_with_script(cmd)
        else:
            script, timing = self.record_with_ttyrec(cmd)

        logger.info(f"Recorded {len(script)} bytes, {len(timing.splitlines())} timing lines")
        return CanonicalSession(script=script, timing=timing, strategy=strategy,
                                dimensions=dimensions)

    def record_with_script(self, cmd=None):
        with temp_files(2) as (scriptfile, timingfile):
            try:
                run_script(scriptfile, timingfile, cmd, self.script_binary)
            except OSError as e:
                raise CaptureInvocationError(f"Could not run script: {e}") from e

            script = scriptfile.read_bytes()
            timing = timingfile.read_text(errors='replace')

        if not script or not timing:
            raise CaptureInvocationError("script did not record anything")
        return script, timing

    def record_with_ttyrec(self, cmd=None):
        with temp_files(1) as (scriptfile,):
            args = ttyrec_command(scriptfile, cmd, self.ttyrec_binary)
            logger.info(f"Running: {' '.join(args)}")
            try:
                subprocess.run(args)
            except OSError as e:
                raise CaptureInvocationError(f"Could not run ttyrec: {e}") from e

            ttyrecord = scriptfile.read_bytes()

        if not ttyrecord:
            raise CaptureInvocationError("ttyrec did not record anything")
        return ttyrec.convert(ttyrecord)
