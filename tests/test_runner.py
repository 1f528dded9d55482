"""Tests for command resolution and the child process runner."""

import os
import sys
import pytest

from opencode_notifier.config import CommandConfig
from opencode_notifier.exceptions import ConfigurationError
from opencode_notifier.runner import (
    ChildProcessRunner,
    build_argv,
    is_path_like,
    resolve_command,
    unique_commands,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="uses executable bit")


def make_executable(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


class TestResolveCommand:
    """Candidate lookup order and the not-found error."""

    def test_path_like(self):
        assert is_path_like("./opencode")
        assert is_path_like("bin/opencode")
        assert not is_path_like("opencode")

    def test_unique_commands(self):
        assert unique_commands(["a", " b "], ["b", "", None], ["a", "c"]) == ["a", "b", "c"]

    @posix_only
    def test_found_on_path(self, tmp_path):
        tool = make_executable(tmp_path / "bin" / "mytool")
        found = resolve_command(CommandConfig(command="mytool"), {"PATH": str(tool.parent)})
        assert found == str(tool)

    @posix_only
    def test_falls_back_to_candidates(self, tmp_path):
        tool = make_executable(tmp_path / "bin" / "oh-my-tool")
        config = CommandConfig(command="missing-tool", command_candidates=["oh-my-tool"])
        assert resolve_command(config, {"PATH": str(tool.parent)}) == str(tool)

    @posix_only
    def test_relative_to_cwd(self, tmp_path):
        make_executable(tmp_path / "run.sh")
        config = CommandConfig(command="./run.sh", cwd=tmp_path)
        assert resolve_command(config, {"PATH": ""}) == str(tmp_path / "run.sh")

    def test_not_found_lists_attempts(self, tmp_path):
        config = CommandConfig(command="missing-tool", command_candidates=["other-tool"])
        with pytest.raises(ConfigurationError) as exc:
            resolve_command(config, {"PATH": str(tmp_path)})

        message = str(exc.value)
        assert "Requested: missing-tool, other-tool" in message
        assert "Tried: missing-tool, other-tool, opencode, oh-my-opencode, opencode-cli" in message

    @pytest.mark.skipif(os.name == "nt", reason="posix argv")
    def test_build_argv_posix(self):
        assert build_argv("/usr/bin/opencode", ["--model", "fast"]) == ["/usr/bin/opencode", "--model", "fast"]


class TestChildProcessRunner:
    """Run a real interpreter as the wrapped command."""

    def run_script(self, script):
        config = CommandConfig(command=sys.executable, args=["-c", script])
        seen = []
        code = ChildProcessRunner(config, mirror=False).run(
            lambda line, source, read_at: seen.append((source, line))
        )
        return code, seen

    def test_lines_from_both_streams(self):
        code, seen = self.run_script(
            "import sys\n"
            "print('Build complete')\n"
            "print('waiting for input')\n"
            "print('oops', file=sys.stderr)\n"
        )
        assert code == 0
        stdout = [line for source, line in seen if source == "stdout"]
        assert stdout == ["Build complete", "waiting for input"]
        assert ("stderr", "oops") in seen

    def test_exit_code_propagates(self):
        code, _ = self.run_script("import sys; sys.exit(3)")
        assert code == 3

    def test_crlf_stripped(self):
        _, seen = self.run_script("import sys; sys.stdout.write('done\\r\\n')")
        assert seen == [("stdout", "done")]

    def test_read_time_is_epoch_ms(self):
        config = CommandConfig(command=sys.executable, args=["-c", "print('x')"])
        times = []
        ChildProcessRunner(config, mirror=False).run(lambda line, source, read_at: times.append(read_at))
        assert times and times[0] > 1_600_000_000_000
