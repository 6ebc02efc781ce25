"""Subprocess runner for the kbc download tool.

This module provides:
- ToolProcess: Iterable over the output lines of one tool invocation

Iterating a ToolProcess spawns the process, yields every stdout/stderr line
as it is written, and finishes when both streams are closed and the process
has exited. The exit code and the full output are available afterwards.
Iterating again starts a fresh invocation.

The process is never killed; it runs for as long as the tool needs.
"""

from __future__ import annotations

import logging
import os
import queue
import subprocess
import threading
from collections.abc import Iterator, Sequence
from typing import IO

from tablewatch.client.watch.types import OutputLine

logger = logging.getLogger(__name__)

# Exit code reported when the executable cannot be started
EXIT_NOT_STARTED = 127

_EOF = object()


def _pump(stream: IO[str], name: str, lines: queue.Queue[object]) -> None:
    """Forward each line of a pipe to the queue, then signal EOF."""
    try:
        for raw in stream:
            lines.put(OutputLine(name, raw.rstrip("\r\n")))  # type: ignore[arg-type]
    finally:
        stream.close()
        lines.put(_EOF)


class ToolProcess:
    """One external tool invocation observed line by line.

    Usage:
        process = ToolProcess(["kbc", "remote", "table", "download", ...])
        for line in process:
            print(line.text)
        if process.returncode != 0:
            print(process.output)
    """

    def __init__(
        self,
        argv: Sequence[str],
        env: dict[str, str] | None = None,
    ) -> None:
        """Initialize the invocation.

        Args:
            argv: Executable and arguments.
            env: Extra environment variables added to the current environment.
        """
        self._argv = list(argv)
        self._env = env
        self.returncode: int | None = None
        self._stdout: list[str] = []
        self._stderr: list[str] = []

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    @property
    def stdout(self) -> str:
        """Full stdout text of the last invocation."""
        return "\n".join(self._stdout)

    @property
    def stderr(self) -> str:
        """Full stderr text of the last invocation."""
        return "\n".join(self._stderr)

    @property
    def output(self) -> str:
        """Combined stdout and stderr text, stderr last."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def __iter__(self) -> Iterator[OutputLine]:
        self.returncode = None
        self._stdout = []
        self._stderr = []

        env = None
        if self._env:
            env = {**os.environ, **self._env}

        try:
            proc = subprocess.Popen(
                self._argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                env=env,
            )
        except OSError as e:
            logger.error("Failed to execute %s: %s", self._argv[0], e)
            self.returncode = EXIT_NOT_STARTED
            message = f"Failed to execute {self._argv[0]}: {e}"
            self._stderr.append(message)
            yield OutputLine("stderr", message)
            return

        lines: queue.Queue[object] = queue.Queue()
        readers = [
            threading.Thread(
                target=_pump,
                args=(stream, name, lines),
                name=f"ToolProcess-{name}",
                daemon=True,
            )
            for stream, name in ((proc.stdout, "stdout"), (proc.stderr, "stderr"))
        ]
        for reader in readers:
            reader.start()

        try:
            open_streams = len(readers)
            while open_streams:
                item = lines.get()
                if item is _EOF:
                    open_streams -= 1
                    continue
                assert isinstance(item, OutputLine)
                if item.stream == "stdout":
                    self._stdout.append(item.text)
                else:
                    self._stderr.append(item.text)
                yield item
        finally:
            self.returncode = proc.wait()
            for reader in readers:
                reader.join()
            logger.debug("%s exited with code %d", self._argv[0], self.returncode)

    def run(self) -> int:
        """Run to completion without observing output.

        Returns:
            The exit code.
        """
        for _ in self:
            pass
        assert self.returncode is not None
        return self.returncode
