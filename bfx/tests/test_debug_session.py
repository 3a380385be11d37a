import io
import json
import socket
import threading

from bfx import bfx_constants as const
from bfx.bfxdbg.protocol import ClientCommand, encode
from bfx.bfxdbg.session import STATE_FINISHED, DebugSession

from conftest import split_lines


def _script(*commands: dict) -> io.BytesIO:
    return io.BytesIO(b"".join(json.dumps(command).encode("utf-8") + b"\n" for command in commands))


def _session(*commands: dict):
    writer = io.BytesIO()
    return DebugSession(_script(*commands), writer), writer


def _states(writer: io.BytesIO):
    return [msg for msg in split_lines(writer.getvalue()) if msg["type"] == const.MSG_DEBUG_STATE]


def test_step_pauses_on_next_statement(run_source):
    session, writer = _session({"operation": "step"}, {"operation": "resume"})
    result = run_source("debug+debug+.", debugger=session)
    assert result.code == 0
    assert result.out == b"\x02"
    first, second = _states(writer)
    assert first["statement"]["type"] == "Increment"
    assert first["position"] == {"line": 1, "column": 6}
    assert first["cursor"] == 0 and first["tape"][0] == 0
    assert second["position"] == {"line": 1, "column": 12}
    assert second["tape"][0] == 1
    assert len(first["tape"]) == const.DEBUG_TAPE_WINDOW


def test_resume_runs_to_completion(run_source):
    session, writer = _session({"operation": "resume"})
    result = run_source("debug+++.", debugger=session)
    assert result.out == b"\x03"
    assert len(_states(writer)) == 1


def test_step_from_unmarked_run(run_source):
    session, writer = _session({"operation": "step"}, {"operation": "step"}, {"operation": "resume"})
    run_source("debug+>+<.", debugger=session)
    columns = [state["position"]["column"] for state in _states(writer)]
    assert columns == [6, 7, 8]


def test_step_over_skips_one_statement(run_source):
    session, writer = _session({"operation": "step-over"}, {"operation": "resume"})
    result = run_source("debug+++.", debugger=session)
    assert result.out == b"\x03"
    first, second = _states(writer)
    assert second["position"]["column"] == 8
    assert second["tape"][0] == 2


def test_step_past_loop_body_end(run_source):
    session, writer = _session({"operation": "step"}, {"operation": "resume"})
    result = run_source("+[debug-]+.", debugger=session)
    assert result.out == b"\x01"
    first, second = _states(writer)
    assert first["statement"]["type"] == "Decrement"
    assert second["statement"]["type"] == "Increment"
    assert second["position"]["column"] == 10


def test_step_out_abandons_loop_and_pauses_after_it(run_source):
    session, writer = _session({"operation": "step-out"}, {"operation": "resume"})
    result = run_source("++[debug->+<]>.", debugger=session)
    # the paused decrement and the rest of the body never run
    assert result.out == b"\x00"
    first, second = _states(writer)
    assert first["statement"]["type"] == "Decrement"
    assert second["statement"]["type"] == "MoveRight"
    assert second["position"]["column"] == 14
    assert second["tape"][:2] == [2, 0]


def test_step_out_skips_remaining_body(run_source):
    session, writer = _session({"operation": "step-out"}, {"operation": "resume"})
    result = run_source("+[debug>+<-]", debugger=session)
    assert result.code == 0
    assert result.engine.tape.cells[0] == 1
    assert result.engine.tape.cells[1] == 0
    assert result.engine.tape.cursor == 0
    assert len(_states(writer)) == 1


def test_step_out_of_inner_loop_returns_to_outer_body(run_source):
    session, writer = _session({"operation": "step-out"}, {"operation": "resume"})
    result = run_source("+[>+[debug-]<-]", debugger=session)
    assert result.code == 0
    first, second = _states(writer)
    assert first["statement"]["type"] == "Decrement"
    assert second["statement"]["type"] == "MoveLeft"
    assert second["position"]["column"] == 13
    assert list(result.engine.tape.cells[:2]) == [0, 1]


def test_step_out_at_top_level_ends_program(run_source):
    session, writer = _session({"operation": "step-out"})
    result = run_source("debug+++.", debugger=session)
    assert result.code == 0
    assert result.out == b""
    assert result.engine.tape.cells[0] == 0
    assert len(_states(writer)) == 1


def test_assign_stays_paused(run_source):
    session, writer = _session({"operation": "assign", "cell": 0, "value": 41}, {"operation": "resume"})
    result = run_source("debug+.", debugger=session)
    assert result.out == b"*"
    first, second = _states(writer)
    assert first["tape"][0] == 0
    assert second["tape"][0] == 41
    assert second["position"] == first["position"]


def test_move_sets_cursor_and_steps(run_source):
    session, writer = _session({"operation": "move", "cell": 3}, {"operation": "resume"})
    result = run_source("debug+.", debugger=session)
    assert result.out == b"\x01"
    first, second = _states(writer)
    assert second["statement"]["type"] == "Output"
    assert second["cursor"] == 3
    assert second["tape"][3] == 1


def test_invalid_move_is_ignored(run_source):
    session, writer = _session({"operation": "move", "cell": const.TAPE_SIZE}, {"operation": "resume"})
    result = run_source("debug+.", debugger=session)
    assert result.out == b"\x01"
    assert result.engine.tape.cursor == 0


def test_unknown_operation_ignored_and_eof_detaches(run_source):
    session, writer = _session({"operation": "dance"})
    result = run_source("debug+debug+.", debugger=session)
    assert result.code == 0
    assert result.out == b"\x02"
    assert session.detached is True
    assert len(_states(writer)) == 1


def test_malformed_command_is_uncaught_error(run_source):
    writer = io.BytesIO()
    session = DebugSession(io.BytesIO(b"not json\n"), writer)
    result = run_source("debug+.", debugger=session)
    assert result.code == 1
    assert result.err.startswith("Program threw an error:")
    errors = [msg for msg in split_lines(writer.getvalue()) if msg["type"] == const.MSG_STD_ERR]
    assert errors and "Program threw an error:" in errors[0]["value"]


def test_close_sends_exit_once():
    writer = io.BytesIO()
    closed = []
    session = DebugSession(io.BytesIO(), writer, closer=lambda: closed.append(True))
    session.open("main.bf", "/tmp/main.bf", "+.")
    session.close(0)
    session.close(1)
    messages = split_lines(writer.getvalue())
    assert [msg["type"] for msg in messages] == [const.MSG_METADATA, const.MSG_EXIT]
    assert messages[0]["file_name"] == "main.bf"
    assert messages[1]["code"] == 0
    assert closed == [True]
    assert session.state == STATE_FINISHED


def test_listen_accepts_one_tcp_client(run_source):
    announce = io.StringIO()
    holder = {}

    def serve():
        holder["session"] = DebugSession.listen("127.0.0.1", 0, announce=announce)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    port = None
    for _ in range(200):
        text = announce.getvalue()
        if text.endswith("\n"):
            port = int(text)
            break
        threading.Event().wait(0.01)
    assert port is not None
    client = socket.create_connection(("127.0.0.1", port), timeout=5.0)
    thread.join(timeout=5.0)
    session = holder["session"]
    client.sendall(encode(ClientCommand(operation=const.OP_RESUME)))
    result = run_source("debug+.", debugger=session)
    session.close(result.code)
    reader = client.makefile("rb")
    messages = [json.loads(line) for line in reader]
    client.close()
    assert [msg["type"] for msg in messages] == [const.MSG_DEBUG_STATE, const.MSG_EXIT]
    assert result.out == b"\x01"
