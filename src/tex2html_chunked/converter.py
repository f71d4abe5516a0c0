"""
converter.py - Pandoc converter

A convert(args, latex) -> html callable backed by the pandoc executable.
Reads LaTeX on stdin and returns HTML from stdout.
"""

import logging
import shlex
import shutil
import subprocess

logger = logging.getLogger(__name__)

_FROM_FLAGS = ('-f', '--from', '-r', '--read')
_TO_FLAGS = ('-t', '--to', '-w', '--write')


def _has_flag(tokens, flags):
    for token in tokens:
        if token in flags or any(token.startswith(f + '=') for f in flags if f.startswith('--')):
            return True
    return False


class PandocConverter:
    """Runs ``pandoc [ARGS] -f latex -t html`` for each call.

    Input/output formats are only added when ``args_text`` does not choose
    them itself.
    """

    def __init__(self, executable='pandoc', timeout=None):
        self.executable = executable
        self.timeout = timeout

    def resolve_executable(self):
        path = shutil.which(self.executable)
        if not path:
            raise FileNotFoundError(
                f"pandoc executable not found: {self.executable}")
        return path

    def build_command(self, args_text):
        tokens = shlex.split(args_text or '')
        cmd = [self.resolve_executable()] + tokens
        if not _has_flag(tokens, _FROM_FLAGS):
            cmd += ['-f', 'latex']
        if not _has_flag(tokens, _TO_FLAGS):
            cmd += ['-t', 'html']
        return cmd

    def __call__(self, args_text, latex):
        cmd = self.build_command(args_text)
        logger.debug("Running: %s", ' '.join(shlex.quote(c) for c in cmd))
        try:
            result = subprocess.run(
                cmd, input=latex, capture_output=True, text=True,
                encoding='utf-8', timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise TimeoutError(
                f"pandoc conversion timeout after {self.timeout}s") from None

        if result.returncode != 0:
            tail = result.stderr[-300:].strip() if result.stderr else 'no output'
            raise RuntimeError(
                f"pandoc exited with code {result.returncode}: {tail}")
        if result.stderr:
            logger.debug("pandoc warnings: %s", result.stderr.strip()[-300:])
        return result.stdout
