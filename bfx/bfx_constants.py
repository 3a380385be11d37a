"""Shared bfx constants.

Tape geometry, I/O target names, waiter names and debug protocol tags are
kept here so the engine, the debug session and the CLI client agree on them.
"""

from __future__ import annotations

from typing import Tuple

TAPE_SIZE = 30000
CELL_MASK = 0xFF
DEBUG_TAPE_WINDOW = 100

# I/O target kinds (the spelling used by ``io <target>`` in source files)
TARGET_STD = "std"
TARGET_FILE = "file"
TARGET_HTTP = "http"
TARGET_TCP = "tcp"
IO_TARGETS: Tuple[str, ...] = (TARGET_STD, TARGET_FILE, TARGET_HTTP, TARGET_TCP)

DEFAULT_FILE_PATH = "io.txt"
DEFAULT_HTTP_ADDRESS = ":8080"

# Named wait-groups shared by the interpreter and listener threads
WAITER_PROGRAM = "program"
WAITER_HTTP_CONNECTION = "http-connection"
WAITER_WRITE = "write"
WAITER_NAMES: Tuple[str, ...] = (WAITER_PROGRAM, WAITER_HTTP_CONNECTION, WAITER_WRITE)

# Server -> client message types
MSG_METADATA = "metadata"
MSG_DEBUG_STATE = "debug-state"
MSG_EXIT = "exit"
MSG_STD_OUT = "std-out"
MSG_STD_ERR = "std-err"
SERVER_MESSAGES: Tuple[str, ...] = (MSG_METADATA, MSG_DEBUG_STATE, MSG_EXIT, MSG_STD_OUT, MSG_STD_ERR)

# Client -> server operations
OP_STEP = "step"
OP_STEP_OVER = "step-over"
OP_STEP_OUT = "step-out"
OP_RESUME = "resume"
OP_MOVE = "move"
OP_ASSIGN = "assign"
CLIENT_OPERATIONS: Tuple[str, ...] = (OP_STEP, OP_STEP_OVER, OP_STEP_OUT, OP_RESUME, OP_MOVE, OP_ASSIGN)

EXIT_OK = 0
EXIT_FAILURE = 1

DEFAULT_DEBUG_HOST = "127.0.0.1"
