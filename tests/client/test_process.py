"""Tests for the tool subprocess runner."""

import sys

from tablewatch.client.watch.process import EXIT_NOT_STARTED, ToolProcess


def python_tool(code: str) -> ToolProcess:
    """A ToolProcess running a Python snippet."""
    return ToolProcess([sys.executable, "-c", code])


class TestToolProcess:
    """Tests for ToolProcess."""

    def test_streams_stdout_lines(self) -> None:
        """Each stdout line is yielded in order."""
        process = python_tool("print('one'); print('two')")

        lines = list(process)

        assert [(line.stream, line.text) for line in lines] == [("stdout", "one"), ("stdout", "two")]
        assert process.returncode == 0

    def test_captures_stderr_and_exit_code(self) -> None:
        """stderr lines are tagged and the exit code is kept."""
        process = python_tool(
            "import sys; print('progress'); sys.stderr.write('Error: boom\\n'); sys.exit(3)"
        )

        lines = list(process)

        assert {line.stream for line in lines} == {"stdout", "stderr"}
        assert process.returncode == 3
        assert process.stdout == "progress"
        assert process.stderr == "Error: boom"
        assert process.output == "progress\nError: boom"

    def test_returncode_none_before_run(self) -> None:
        """The exit code is only known after iteration."""
        assert python_tool("pass").returncode is None

    def test_run(self) -> None:
        """run() drains output and returns the exit code."""
        assert python_tool("import sys; sys.exit(2)").run() == 2

    def test_iterating_again_restarts(self) -> None:
        """Each iteration is a fresh invocation."""
        process = python_tool("print('x')")

        assert len(list(process)) == 1
        assert len(list(process)) == 1
        assert process.stdout == "x"

    def test_missing_executable(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        """A missing executable reports exit code 127 on stderr."""
        process = ToolProcess([str(tmp_path / "no-such-kbc"), "remote"])

        lines = list(process)

        assert process.returncode == EXIT_NOT_STARTED
        assert len(lines) == 1
        assert lines[0].stream == "stderr"
        assert "no-such-kbc" in lines[0].text

    def test_env_is_merged(self) -> None:
        """Extra variables are added to the inherited environment."""
        process = ToolProcess(
            [sys.executable, "-c", "import os; print(os.environ['TABLEWATCH_TEST'], bool(os.environ.get('PATH')))"],
            env={"TABLEWATCH_TEST": "hello"},
        )

        assert process.run() == 0
        assert process.stdout == "hello True"
