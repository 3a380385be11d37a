import io
import json
import threading
import time

import pytest

from bfx.bfx_dbg.cli import build_arg_parser
from bfx.bfx_dbg.commands import build_registry
from bfx.bfx_dbg.context import DebuggerContext
from bfx.bfx_dbg.parser import PARSE_ERROR, split_command
from bfx.bfx_dbg.repl import DebuggerREPL
from bfx.runtime import DEBUG_TCP, RunOptions, run_file


class InterpreterThread:
    """Runs ``bfx run --debug-port 0`` in-process and exposes the announced port."""

    def __init__(self, path) -> None:
        self._err_bytes = io.BytesIO()
        self.stdout = io.BytesIO()
        stderr = io.TextIOWrapper(self._err_bytes, encoding="utf-8", write_through=True)
        self.options = RunOptions(
            path=str(path),
            debug=DEBUG_TCP,
            debug_port=0,
            stdout=self.stdout,
            stderr=stderr,
            stdin=io.BytesIO(),
        )
        self.code = None
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        self.code = run_file(self.options)

    @property
    def port(self) -> int:
        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline:
            text = self._err_bytes.getvalue().decode("utf-8")
            if text.endswith("\n"):
                return int(text.split()[0])
            time.sleep(0.01)
        raise AssertionError("interpreter never announced its port")

    def join(self) -> None:
        self._thread.join(timeout=5.0)


@pytest.fixture
def interpreter(tmp_path):
    started = []

    def _start(source: str) -> InterpreterThread:
        path = tmp_path / "prog.bf"
        path.write_text(source)
        thread = InterpreterThread(path)
        started.append(thread)
        return thread

    yield _start
    for thread in started:
        thread.join()


def test_split_command_handles_quotes_and_errors():
    assert split_command('assign 1 "2"') == ["assign", "1", "2"]
    assert split_command("") == []
    assert split_command('step "unterminated')[0] == PARSE_ERROR


def test_registry_resolves_aliases():
    registry = build_registry()
    assert registry.get("c") is registry.get("continue")
    assert registry.get("n").name == "next"
    assert registry.get("finish").name == "out"
    assert registry.get("bogus") is None


def test_cli_requires_port():
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args([])


def test_move_validates_cell_before_connecting(capsys):
    ctx = DebuggerContext(port=1)
    assert build_registry().get("move").run(ctx, ["30000"]) == 1
    assert "outside tape" in capsys.readouterr().out


def test_assign_validates_value(capsys):
    ctx = DebuggerContext(port=1, json_output=True)
    assert build_registry().get("assign").run(ctx, ["0", "0x100"]) == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "error"


def test_step_takes_no_arguments(capsys):
    ctx = DebuggerContext(port=1)
    assert build_registry().get("step").run(ctx, ["3"]) == 1


def test_session_against_interpreter(interpreter, capsys):
    proc = interpreter("debug+ debug+ |65.")
    ctx = DebuggerContext(port=proc.port, timeout=5.0)
    registry = build_registry()
    try:
        assert registry.get("state").run(ctx, []) == 0
        assert ctx.metadata is not None and ctx.metadata.file_name == "prog.bf"
        assert ctx.last_state.position == {"line": 1, "column": 6}
        assert "paused at Increment (1:6)" in capsys.readouterr().out

        assert registry.get("assign").run(ctx, ["0", "9"]) == 0
        assert ctx.last_state.tape[0] == 9

        assert registry.get("step").run(ctx, []) == 0
        assert ctx.last_state.position == {"line": 1, "column": 13}
        assert ctx.last_state.tape[0] == 10

        assert registry.get("continue").run(ctx, []) == 0
        assert ctx.exit_code == 0
        assert "program exited with code 0" in capsys.readouterr().out
    finally:
        ctx.disconnect()
    proc.join()
    assert proc.code == 0
    assert proc.stdout.getvalue() == b"A"


def test_json_output_and_repl_dispatch(interpreter, capsys):
    proc = interpreter("debug+ .")
    ctx = DebuggerContext(port=proc.port, json_output=True, timeout=5.0)
    repl = DebuggerREPL(ctx, build_registry())
    try:
        assert repl.dispatch("state") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["status"] == "ok"
        assert payload["result"]["statement"] == "Increment"
        assert payload["result"]["cursor"] == 0
        assert repl.dispatch("frobnicate") == 1
        capsys.readouterr()
        assert repl.dispatch("resume") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["result"] == {"exit": 0}
    finally:
        ctx.disconnect()
    proc.join()
    assert proc.stdout.getvalue() == b"\x01"


def test_help_lists_usage_and_aliases(capsys):
    registry = build_registry()
    assert registry.get("help").run(DebuggerContext(port=1), []) == 0
    lines = capsys.readouterr().out.splitlines()
    assert any(line.startswith("assign CELL VALUE") for line in lines)
    assert any("aliases: c, cont, resume" in line for line in lines)


def test_exit_without_connection_just_leaves(capsys):
    with pytest.raises(SystemExit) as info:
        build_registry().get("exit").run(DebuggerContext(port=1), [])
    assert info.value.code == 0
    assert capsys.readouterr().out == ""


def test_exit_detaches_from_paused_program(interpreter, capsys):
    proc = interpreter("debug+ debug+ .")
    ctx = DebuggerContext(port=proc.port, timeout=5.0)
    registry = build_registry()
    assert registry.get("state").run(ctx, []) == 0
    capsys.readouterr()
    with pytest.raises(SystemExit):
        registry.get("exit").run(ctx, [])
    assert "detaching" in capsys.readouterr().out
    proc.join()
    # the second marked statement no longer pauses once the client is gone
    assert proc.code == 0
    assert proc.stdout.getvalue() == b"\x02"
