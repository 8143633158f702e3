"""Rasterise a graph :class:`~telview.core.graph.Scene` into terminal cells.

One graph pixel is one character cell. Diamonds become ``◆`` glyphs and
vertical lines become ``│`` columns; halo shapes (anything larger than the
style's base size) only tint the cell background so the glyph on top stays
readable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from rich.style import Style
from rich.text import Text

from ..core.graph import Diamond, GraphStyle, Scene, VLine

DIAMOND_GLYPH = "◆"
LINE_GLYPH = "│"
BLANK = " "


@dataclass
class Cell:
    char: str = BLANK
    fg: str | None = None
    bg: str | None = None


def _expand_colour(colour: str) -> str:
    # rich wants #rrggbb
    if len(colour) == 4 and colour.startswith("#"):
        return "#" + "".join(c * 2 for c in colour[1:])
    return colour


def _column(x: float, width: int) -> int | None:
    if not math.isfinite(x):
        return None
    col = int(round(x))
    if 0 <= col < width:
        return col
    return None


def rasterize(scene: Scene, style: GraphStyle) -> list[list[Cell]]:
    """Paint ``scene`` onto a ``scene.height`` × ``scene.width`` cell grid, in shape order."""

    width, height = max(scene.width, 0), max(scene.height, 0)
    grid = [[Cell(bg=scene.background) for _ in range(width)] for _ in range(height)]
    for shape in scene.shapes:
        col = _column(shape.x, width)
        if col is None:
            continue
        if isinstance(shape, VLine):
            halo = shape.width > style.line_width
            for row in grid:
                if halo:
                    row[col].bg = shape.colour
                else:
                    row[col].char = LINE_GLYPH
                    row[col].fg = shape.colour
        elif isinstance(shape, Diamond):
            # NaN and infinite values stay in the ranges but have no cell
            if not math.isfinite(shape.y):
                continue
            line = int(round(shape.y))
            if not 0 <= line < height:
                continue
            cell = grid[line][col]
            if shape.size > style.point_size:
                cell.bg = shape.colour
            else:
                cell.char = DIAMOND_GLYPH
                cell.fg = shape.colour
    return grid


def _overlay(row: list[Cell], text: str, *, right: bool = False) -> None:
    if not text or not row:
        return
    text = text[: len(row)]
    start = len(row) - len(text) if right else 0
    for offset, char in enumerate(text):
        cell = row[start + offset]
        if cell.char == BLANK:
            cell.char = char
            cell.fg = "#888888"


def to_text(scene: Scene, style: GraphStyle, *, labels: bool = True) -> Text:
    """Rich text for ``scene``; value labels are drawn into the top and bottom rows."""

    grid = rasterize(scene, style)
    if labels and grid:
        _overlay(grid[0], scene.labels.max_value)
        _overlay(grid[-1], scene.labels.min_value)
    text = Text(no_wrap=True, overflow="crop")
    for index, row in enumerate(grid):
        if index:
            text.append("\n")
        for cell in row:
            text.append(
                cell.char,
                Style(
                    color=_expand_colour(cell.fg) if cell.fg else None,
                    bgcolor=_expand_colour(cell.bg) if cell.bg else None,
                ),
            )
    return text


def time_axis(scene: Scene, width: int) -> str:
    """``min_time`` flush left and ``max_time`` flush right on one line."""

    left, right = scene.labels.min_time, scene.labels.max_time
    gap = width - len(left) - len(right)
    if gap < 1:
        return left[:width]
    return left + BLANK * gap + right


__all__ = ["Cell", "rasterize", "time_axis", "to_text"]
