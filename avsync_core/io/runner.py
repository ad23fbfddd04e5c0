# avsync_core/io/runner.py

"""
Runs the external media tools (ffmpeg, fpcalc) for the extraction layer.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections import deque
from collections.abc import Callable
from datetime import datetime

logger = logging.getLogger(__name__)


class CommandRunner:
    """Executes external commands (ffmpeg, fpcalc) and captures their output."""

    def __init__(
        self,
        config: dict | None = None,
        log_callback: Callable[[str], None] | None = None,
    ):
        self.config = config or {}
        self.log = log_callback
        self.timed_out = False

    def _log_message(self, message: str):
        """Log at debug level and forward a timestamped line to the callback."""
        logger.debug(message)
        if self.log is None:
            return
        ts = datetime.now().strftime('%H:%M:%S')
        self.log(f'[{ts}] {message}')

    def run(
        self,
        cmd: list[str],
        tool_paths: dict,
        is_binary: bool = False,
        timeout: float | None = None,
    ) -> str | bytes | None:
        """
        Run one tool invocation, resolving cmd[0] through tool_paths.

        Returns captured stdout as a string (stderr merged in, since ffmpeg
        reports filter output there), or bytes if is_binary=True (stderr kept
        apart so it cannot corrupt PCM data).
        Returns None on failure or timeout; `timed_out` tells the two apart.
        """
        self.timed_out = False
        if not cmd:
            return None

        tool_name = cmd[0]
        full_cmd = [tool_paths.get(tool_name, tool_name)] + list(map(str, cmd[1:]))
        pretty_cmd = ' '.join(shlex.quote(str(c)) for c in full_cmd)
        self._log_message(f'$ {pretty_cmd}')

        err_tail = int(self.config.get('log_error_tail', 20))

        popen_kwargs = {
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE if is_binary else subprocess.STDOUT,
            "stdin": subprocess.DEVNULL,
        }
        if not is_binary:
            popen_kwargs["text"] = True
            popen_kwargs["encoding"] = 'utf-8'
            popen_kwargs["errors"] = 'replace'

        try:
            proc = subprocess.Popen(full_cmd, **popen_kwargs)
        except OSError as e:
            self._log_message(f'[!] Failed to execute command: {e}')
            return None

        try:
            stdout_data, stderr_data = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            self.timed_out = True
            self._log_message(f'[!] Command timed out after {timeout}s')
            return None

        rc = proc.returncode or 0
        if rc != 0:
            self._log_message(f'[!] Command failed with exit code {rc}')
            diag = stderr_data if is_binary else stdout_data
            if isinstance(diag, bytes):
                diag = diag.decode('utf-8', errors='replace')
            if err_tail > 0 and diag:
                tail = deque(diag.splitlines(), maxlen=err_tail)
                self._log_message('[stderr/tail]\n' + '\n'.join(tail).rstrip())
            return None

        return stdout_data
