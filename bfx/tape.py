"""Fixed-size byte tape with a bounds-checked cursor."""

from __future__ import annotations

from typing import List

from . import bfx_constants as const


class Tape:
    """Byte cells plus a cursor kept in ``[0, size - 1]``.

    Moves that would leave the tape return ``False`` and leave the cursor where
    it was; the engine turns that into a stack error. Cell arithmetic wraps.
    """

    __slots__ = ("cells", "cursor")

    def __init__(self, size: int = const.TAPE_SIZE) -> None:
        self.cells = bytearray(size)
        self.cursor = 0

    def __len__(self) -> int:
        return len(self.cells)

    @property
    def current(self) -> int:
        return self.cells[self.cursor]

    @current.setter
    def current(self, value: int) -> None:
        self.cells[self.cursor] = value & const.CELL_MASK

    def increment(self) -> None:
        self.cells[self.cursor] = (self.cells[self.cursor] + 1) & const.CELL_MASK

    def decrement(self) -> None:
        self.cells[self.cursor] = (self.cells[self.cursor] - 1) & const.CELL_MASK

    def move_right(self) -> bool:
        if self.cursor >= len(self.cells) - 1:
            return False
        self.cursor += 1
        return True

    def move_left(self) -> bool:
        if self.cursor <= 0:
            return False
        self.cursor -= 1
        return True

    def clear(self) -> None:
        self.cells[:] = bytes(len(self.cells))

    def in_range(self, cell: int) -> bool:
        return 0 <= cell < len(self.cells)

    def seek(self, cell: int) -> None:
        if not self.in_range(cell):
            raise IndexError(f"cell {cell} outside tape of {len(self.cells)} cells")
        self.cursor = cell

    def store(self, cell: int, value: int) -> None:
        if not self.in_range(cell):
            raise IndexError(f"cell {cell} outside tape of {len(self.cells)} cells")
        self.cells[cell] = value & const.CELL_MASK

    def window(self, size: int = const.DEBUG_TAPE_WINDOW) -> List[int]:
        return list(self.cells[:size])
