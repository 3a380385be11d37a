import pytest

from bfx import bfx_constants as const
from bfx.engine import BreakpointTable, Engine
from bfx.errors import StackOverflowError, StackUnderflowError
from bfx.io_targets import IOSourceConfig
from bfx.parser import parse


def test_output_current_cell(run_source):
    result = run_source("+++.")
    assert result.code == const.EXIT_OK
    assert result.out == b"\x03"
    assert result.err == ""


def test_loop_clears_cell(run_source):
    result = run_source("+[-].")
    assert result.code == 0
    assert result.out == b"\x00"
    assert result.engine.tape.cells[0] == 0


def test_loop_body_runs_once_per_count(run_source):
    # cell0 counts down from 5, cell1 gains 2 per pass
    result = run_source("+++++[>++<-]>.")
    assert result.out == bytes([10])


def test_skipped_loop_when_cell_zero(run_source):
    result = run_source("[+++].")
    assert result.out == b"\x00"


def test_increment_wraps_to_zero(run_source):
    result = run_source("+" * 256 + ".")
    assert result.out == b"\x00"


def test_decrement_wraps_to_255(run_source):
    result = run_source("-.")
    assert result.out == b"\xff"


def test_hello_world(run_source):
    source = (
        "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
        ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
    )
    result = run_source(source)
    assert result.out == b"Hello World!\n"


def test_echo_console_input(run_source):
    result = run_source(",.,.,.", stdin=b"hi")
    # end of input reads as zero
    assert result.out == b"hi\x00"


def test_clear_resets_every_cell(run_source):
    result = run_source("+++>++*.<.")
    assert result.out == b"\x00\x00"
    assert not any(result.engine.tape.cells)
    assert result.engine.tape.cursor == 0


def test_push_stores_literal(run_source):
    result = run_source("|72.|105.")
    assert result.out == b"Hi"


def test_underflow_reports_stack_error(run_source):
    result = run_source("+\n<")
    assert result.code == const.EXIT_FAILURE
    assert result.err.startswith("Stack error:\n")
    assert "'stack underflow' at line 2 column 1 in main.bf" in result.err
    assert result.err.rstrip().endswith("main.bf 2:1")


def test_overflow_at_last_cell():
    engine = Engine(parse(">" * (const.TAPE_SIZE - 1)))
    engine.execute(engine.program)
    assert engine.tape.cursor == const.TAPE_SIZE - 1
    with pytest.raises(StackOverflowError):
        engine.execute(parse(">"))


def test_underflow_raises_from_execute():
    engine = Engine(parse("<"))
    with pytest.raises(StackUnderflowError) as info:
        engine.execute(engine.program)
    assert info.value.kind == "stack-underflow"


def test_output_before_error_is_kept(run_source):
    result = run_source("|65.<")
    assert result.out == b"A"
    assert result.code == 1


def test_file_target_echo(run_source, tmp_path):
    target = tmp_path / "data.txt"
    target.write_bytes(b"xy")
    config = IOSourceConfig(file_path=str(target), http_address="127.0.0.1:0")
    # read two bytes from the file then append them after the read offset
    result = run_source("io file ,>,<.>.", config=config)
    assert result.code == 0
    assert result.out == b""
    assert target.read_bytes() == b"xyxy"


def test_file_target_created_when_missing(run_source, tmp_path):
    target = tmp_path / "new.txt"
    config = IOSourceConfig(file_path=str(target), http_address="127.0.0.1:0")
    result = run_source("io file |111. io std |107.", config=config)
    assert result.code == 0
    assert target.read_bytes() == b"o"
    assert result.out == b"k"


def test_file_target_open_failure_is_uncaught(run_source, tmp_path):
    config = IOSourceConfig(file_path=str(tmp_path / "missing" / "x.txt"), http_address="127.0.0.1:0")
    result = run_source("io file +.", config=config)
    assert result.code == 1
    assert result.err.startswith("Program threw an error:\n")
    assert "line 1 column 1" in result.err


def test_tcp_target_discards_output(run_source):
    result = run_source("io tcp |65. io std |66.")
    assert result.code == 0
    assert result.out == b"B"


def test_breakpoint_table_tracks_marks():
    program = parse("debug + [debug -]")
    table = BreakpointTable.from_program(program)
    assert table.is_armed(program[0])
    assert table.is_armed(program[1].body[0])
    assert not table.is_armed(program[1])
    table.arm(program[1])
    assert table.is_armed(program[1])
    table.consume(program[1])
    assert not table.is_armed(program[1])
    table.arm(program[1])
    table.clear_transient()
    assert not table.is_armed(program[1])
    assert table.is_armed(program[0])


def test_marked_statements_ignored_without_debugger(run_source):
    result = run_source("debug +++ debug .")
    assert result.out == b"\x03"


ALL_BYTES = bytes(range(256))


@pytest.mark.parametrize("target", [const.TARGET_STD, const.TARGET_FILE])
def test_echo_every_byte_value(run_source, tmp_path, target):
    if target == const.TARGET_STD:
        result = run_source(",." * 256, stdin=ALL_BYTES)
        assert result.code == 0
        assert result.out == ALL_BYTES
        return
    data_file = tmp_path / "bytes.bin"
    data_file.write_bytes(ALL_BYTES)
    config = IOSourceConfig(file_path=str(data_file), http_address="127.0.0.1:0")
    # reads and writes share one offset: read everything, then write it back after it
    source = "io file " + ",>" * 256 + "<" * 256 + ".>" * 256
    result = run_source(source, config=config)
    assert result.code == 0
    assert bytes(result.engine.tape.cells[:256]) == ALL_BYTES
    assert data_file.read_bytes() == ALL_BYTES * 2
