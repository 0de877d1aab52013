#!/usr/bin/env python3
"""
showterm command line tool
Records a terminal session and uploads it

Usage:
  Record a shell:    showterm
  Record a command:  showterm vim notes.txt
  Retry an upload:   showterm --retry showterm-20240101-120000.script showterm-20240101-120000.timing
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from showterm.config import UploadSettings
from showterm.errors import ShowtermError, UploadError
from showterm.logging_config import setup_logging
from showterm.session_recorder import SessionRecorder
from showterm.terminal import terminal_size
from showterm.upload import UploadClient

logger = logging.getLogger("showterm.cli")


def save_session(script, timing, directory='.'):
    """Keep a recording that could not be uploaded so it can be retried"""
    stamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    script_path = Path(directory) / f"showterm-{stamp}.script"
    timing_path = Path(directory) / f"showterm-{stamp}.timing"
    script_path.write_bytes(script)
    timing_path.write_text(timing)
    return script_path, timing_path


def record_and_upload(cmd, settings, recorder=None, client=None):
    recorder = recorder or SessionRecorder()
    client = client or UploadClient(settings)

    print("showterm recording. (Exit shell when done.)")
    session = recorder.record(cmd)
    print("showterm recording finished.")

    print("Uploading...")
    try:
        url = client.upload(session.script, session.timing,
                            session.dimensions.columns, session.dimensions.rows)
    except UploadError as e:
        script_path, timing_path = save_session(session.script, session.timing)
        logger.info(f"Upload failed, recording saved to {script_path} and {timing_path}")
        print(f"Upload failed: {e}", file=sys.stderr)
        print(f"To retry: showterm --retry {script_path} {timing_path}", file=sys.stderr)
        return 1

    print(url.strip())
    return 0


def retry_upload(script_path, timing_path, settings, client=None):
    client = client or UploadClient(settings)
    script = Path(script_path).read_bytes()
    timing = Path(timing_path).read_text()
    size = terminal_size()

    print("Uploading...")
    url = client.upload(script, timing, size.columns, size.rows)
    print(url.strip())
    return 0


def main(argv=None):
    p = argparse.ArgumentParser(prog='showterm',
                                description='Record a terminal session and upload it')
    p.add_argument('--retry', nargs=2, metavar=('SCRIPT', 'TIMING'),
                   help='Upload a previously saved recording instead of recording')
    p.add_argument('--debug', action='store_true', help='Log debug output to the console')
    p.add_argument('command', nargs=argparse.REMAINDER,
                   help='Command to record (defaults to your login shell)')

    args = p.parse_args(argv)

    setup_logging(log_level=logging.DEBUG if args.debug else logging.INFO,
                  console_level=logging.DEBUG if args.debug else logging.WARNING)
    settings = UploadSettings.from_env(os.environ)

    try:
        if args.retry:
            return retry_upload(args.retry[0], args.retry[1], settings)
        return record_and_upload(args.command or None, settings)
    except (ShowtermError, OSError) as e:
        logger.info(f"showterm failed: {e}")
        print(f"showterm: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
