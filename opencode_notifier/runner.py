"""Launch the wrapped assistant CLI and stream its output lines."""

import logging
import os
import queue
import shlex
import shutil
import signal
import subprocess
import sys
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional

from .config import DEFAULT_COMMAND_CANDIDATES, CommandConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

WINDOWS_SCRIPT_SUFFIXES = (".cmd", ".bat")


def is_path_like(command: str) -> bool:
    return "/" in command or "\\" in command or command.startswith(".")


def resolve_executable(command: str, cwd: Optional[Path] = None, path_value: Optional[str] = None) -> Optional[str]:
    """Absolute path of command, or None if it cannot be found.

    Path-like commands are resolved against cwd; bare names are looked up
    on path_value (PATH, with PATHEXT on Windows).
    """
    if is_path_like(command):
        candidate = Path(cwd or Path.cwd()) / command
        found = shutil.which(str(candidate))
        return found or (str(candidate) if candidate.is_file() else None)
    return shutil.which(command, path=path_value)


def unique_commands(*groups) -> list[str]:
    seen = []
    for group in groups:
        for command in group:
            if isinstance(command, str) and command.strip() and command.strip() not in seen:
                seen.append(command.strip())
    return seen


def resolve_command(config: CommandConfig, env: Optional[dict] = None) -> str:
    """
    Find the first launchable command among the configured candidates.

    Tries command, then command_candidates, then the built-in candidates.

    Raises:
        ConfigurationError: If none of them resolves
    """
    env = os.environ if env is None else env
    attempted = []
    for candidate in unique_commands([config.command], config.command_candidates, DEFAULT_COMMAND_CANDIDATES):
        attempted.append(candidate)
        found = resolve_executable(candidate, config.cwd, env.get("PATH"))
        if found:
            return found

    requested = ", ".join(unique_commands([config.command], config.command_candidates)) or "(none)"
    raise ConfigurationError(
        f"Could not find the assistant command. Requested: {requested}. "
        f"Tried: {', '.join(attempted)}. "
        "Set command.command to a full path or add command.command_candidates (e.g. oh-my-opencode)."
    )


def build_argv(resolved: str, args: list[str]) -> list[str]:
    """Windows .cmd/.bat launchers need the command interpreter."""
    if os.name == "nt" and resolved.lower().endswith(WINDOWS_SCRIPT_SUFFIXES):
        return [os.environ.get("ComSpec", "cmd.exe"), "/d", "/s", "/c", resolved, *args]
    return [resolved, *args]


@contextmanager
def forward_signals(process: subprocess.Popen):
    """Relay SIGINT/SIGTERM to the child while it runs (main thread only)."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        if process.poll() is None:
            process.send_signal(signum)

    old_handlers = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        old_handlers[signum] = signal.signal(signum, handler)
    try:
        yield
    finally:
        for signum, old_handler in old_handlers.items():
            signal.signal(signum, old_handler)


class ChildProcessRunner:
    """Runs the assistant CLI, mirrors its output and hands each line to on_line."""

    def __init__(self, config: CommandConfig, mirror: bool = True):
        self.config = config
        self.mirror = mirror
        self.process: Optional[subprocess.Popen] = None

    def _pump(self, pipe, source: str, lines: queue.Queue) -> None:
        stream = sys.stdout if source == "stdout" else sys.stderr
        try:
            for raw in iter(pipe.readline, b""):
                if self.mirror:
                    target = getattr(stream, "buffer", None)
                    if target is not None:
                        target.write(raw)
                    else:
                        stream.write(raw.decode("utf-8", errors="replace"))
                    stream.flush()
                lines.put((source, raw.decode("utf-8", errors="replace").rstrip("\r\n"), time.time() * 1000))
        finally:
            pipe.close()
            lines.put(None)

    def run(self, on_line: Callable[[str, str, float], object]) -> int:
        """
        Launch the child and block until it exits.

        Returns:
            The child's exit code (negative for a signal on POSIX)

        Raises:
            ConfigurationError: If the command cannot be found or launched
        """
        env = {**os.environ, **self.config.env}
        resolved = resolve_command(self.config, env)
        argv = build_argv(resolved, self.config.args)
        use_shell = self.config.use_shell and argv[0] == resolved
        command = shlex.join(argv) if use_shell else argv

        logger.info(f"Launching command: {' '.join(argv)}")
        try:
            self.process = subprocess.Popen(
                command,
                cwd=self.config.cwd,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=use_shell,
            )
        except FileNotFoundError:
            raise ConfigurationError(f"Could not launch {resolved!r}. Check the command path and PATH.")

        lines: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(target=self._pump, args=(self.process.stdout, "stdout", lines), daemon=True),
            threading.Thread(target=self._pump, args=(self.process.stderr, "stderr", lines), daemon=True),
        ]

        with forward_signals(self.process):
            for reader in readers:
                reader.start()

            open_streams = len(readers)
            while open_streams:
                item = lines.get()
                if item is None:
                    open_streams -= 1
                    continue
                source, line, read_at = item
                on_line(line, source, read_at)

            code = self.process.wait()

        if code < 0:
            logger.info(f"Child exited via signal: {-code}")
        else:
            logger.info(f"Child exited with code: {code}")
        return code
