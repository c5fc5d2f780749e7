"""
Unit tests for command runners.
"""

import os
import sys
import tempfile

from drsnap.runner import CommandResult, CommandRunner, ScriptedRunner, SubprocessRunner


class TestCommandResult:
    """Tests for CommandResult."""

    def test_ok(self):
        assert CommandResult(args=("true",), returncode=0).ok
        assert not CommandResult(args=("false",), returncode=1).ok

    def test_output_joins_streams(self):
        result = CommandResult(args=("x",), returncode=1, stdout="out\n", stderr="err\n")
        assert result.output == "out\nerr"

    def test_output_skips_empty(self):
        assert CommandResult(args=("x",), returncode=1, stderr="err").output == "err"


class TestSubprocessRunner:
    """Tests for SubprocessRunner."""

    def test_implements_protocol(self):
        assert isinstance(SubprocessRunner(), CommandRunner)

    def test_captures_output(self):
        result = SubprocessRunner().run(
            [sys.executable, "-c", "import sys; print('hello'); sys.stderr.write('oops')"]
        )
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.stderr == "oops"

    def test_nonzero_exit_is_not_raised(self):
        result = SubprocessRunner().run([sys.executable, "-c", "raise SystemExit(3)"])
        assert result.returncode == 3

    def test_env_is_merged(self):
        result = SubprocessRunner().run(
            [sys.executable, "-c", "import os; print(os.environ['DRSNAP_TEST'])"],
            env={"DRSNAP_TEST": "value"},
        )
        assert result.stdout.strip() == "value"

    def test_missing_executable(self):
        result = SubprocessRunner().run(["/nonexistent/drsnap-tool"])
        assert result.returncode == 127

    def test_non_executable_file(self):
        """A tool without the execute bit is reported, not raised."""
        with tempfile.TemporaryDirectory() as tmpdir:
            tool = os.path.join(tmpdir, "pg_basebackup")
            with open(tool, "w") as f:
                f.write("#!/bin/sh\nexit 0\n")
            os.chmod(tool, 0o644)

            result = SubprocessRunner().run([tool, "--version"])

        assert result.returncode == 126
        assert not result.ok
        assert result.stderr


class TestScriptedRunner:
    """Tests for ScriptedRunner."""

    def test_implements_protocol(self):
        assert isinstance(ScriptedRunner(), CommandRunner)

    def test_default_success(self):
        runner = ScriptedRunner()
        assert runner.run(["anything"]).ok

    def test_custom_default(self):
        runner = ScriptedRunner(default=CommandResult(args=(), returncode=255))
        assert runner.run(["ssh"]).returncode == 255

    def test_times_limited_rule(self):
        """A rule with times expires and later rules take over."""
        runner = ScriptedRunner()
        runner.respond("rsync", returncode=23, times=2)

        codes = [runner.run(["rsync", "a", "b"]).returncode for _ in range(3)]

        assert codes == [23, 23, 0]

    def test_first_matching_rule_wins(self):
        runner = ScriptedRunner()
        runner.respond("ls", stdout="first")
        runner.respond("ls", stdout="second")
        assert runner.run(["ls"]).stdout == "first"

    def test_records_calls(self):
        runner = ScriptedRunner()
        runner.run(["pg_basebackup", "-D", "/x"], env={"PGPASSWORD": "pw"})
        runner.run(["rsync", "-a"])

        assert [c.line for c in runner.calls] == ["pg_basebackup -D /x", "rsync -a"]
        assert runner.calls[0].env == {"PGPASSWORD": "pw"}
        assert len(runner.calls_matching("rsync")) == 1

    def test_handler_side_effects(self):
        seen = []

        def handler(args):
            seen.append(args)
            return CommandResult(args=args, returncode=0, stdout="done")

        runner = ScriptedRunner()
        runner.on("pg_basebackup", handler)

        assert runner.run(["pg_basebackup"]).stdout == "done"
        assert seen == [("pg_basebackup",)]
