"""
Pytest configuration and shared helpers for bfx tests.
"""
import io
import json
from typing import Optional, Tuple

import pytest

from bfx import bfx_constants as const
from bfx.engine import Engine
from bfx.io_targets import Endpoint, IOSourceConfig
from bfx.parser import parse


class RunResult:
    def __init__(self, engine: Engine, code: int, out: io.BytesIO, err: io.BytesIO) -> None:
        self.engine = engine
        self.code = code
        self.out = out.getvalue()
        self.err = err.getvalue().decode("utf-8")


@pytest.fixture
def run_source(tmp_path):
    """Parse and run a program against in-memory console streams."""

    def _run(source: str, stdin: bytes = b"", *, config: Optional[IOSourceConfig] = None, debugger=None) -> RunResult:
        path = str(tmp_path / "main.bf")
        out, err = io.BytesIO(), io.BytesIO()
        default = Endpoint(const.TARGET_STD, out, err, io.BytesIO(stdin))
        engine = Engine(
            parse(source, path),
            file_path=path,
            config=config or IOSourceConfig(file_path=str(tmp_path / "io.txt"), http_address="127.0.0.1:0"),
            default=default,
            debugger=debugger,
        )
        code = engine.run()
        return RunResult(engine, code, out, err)

    return _run


def split_lines(data: bytes) -> Tuple[dict, ...]:
    return tuple(json.loads(line) for line in data.splitlines() if line.strip())
