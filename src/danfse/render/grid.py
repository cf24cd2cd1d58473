"""The four column grid and the cursor the sections draw with.

Sections never keep a mutable Y position. Each one receives a
:class:`LayoutContext`, draws at ``ctx.y`` and hands back a new context whose
cursor is at or below the old one.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

from danfse.render.styles import (
    FontSpec,
    LABEL,
    LABEL_LINE_HEIGHT,
    VALUE,
    VALUE_LINE_HEIGHT,
)

logger = logging.getLogger(__name__)

FALLBACK = "-"
ELLIPSIS = "..."

PAGE_WIDTH = 210.0
PAGE_HEIGHT = 297.0
CONTENT_MARGIN = 10.0
FRAME_MARGIN = 3.0
# Column starts as a share of the page width
COLUMN_FRACTIONS = (0.0238, 0.262, 0.5002, 0.7384)
# Gap kept free at the right edge of every cell
CELL_PADDING = 1.0


@dataclass(frozen=True)
class GridColumn:
    x: float
    width: float


@dataclass(frozen=True)
class GridSpec:
    """Page geometry in millimetres."""
    columns: Tuple[GridColumn, ...]
    page_width: float = PAGE_WIDTH
    page_height: float = PAGE_HEIGHT
    margin: float = CONTENT_MARGIN
    frame_margin: float = FRAME_MARGIN

    @classmethod
    def from_fractions(cls, fractions: Sequence[float] = COLUMN_FRACTIONS,
                       page_width: float = PAGE_WIDTH, page_height: float = PAGE_HEIGHT,
                       margin: float = CONTENT_MARGIN,
                       frame_margin: float = FRAME_MARGIN) -> "GridSpec":
        """Build the grid from column start fractions; the last column ends at the right margin."""
        if not fractions:
            raise ValueError("A grid needs at least one column.")
        starts = [page_width * f for f in fractions]
        ends = starts[1:] + [page_width - margin]
        columns = []
        for start, end in zip(starts, ends):
            if end <= start:
                raise ValueError(f"Column starting at {start:.2f} mm has no width.")
            columns.append(GridColumn(x=start, width=end - start))
        return cls(columns=tuple(columns), page_width=page_width, page_height=page_height,
                   margin=margin, frame_margin=frame_margin)

    @property
    def top(self) -> float:
        return self.margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin

    @property
    def left(self) -> float:
        return self.columns[0].x

    @property
    def right(self) -> float:
        return self.page_width - self.margin

    @property
    def frame_rect(self) -> Tuple[float, float, float, float]:
        """x, y, width, height of the page border."""
        return (self.frame_margin, self.frame_margin,
                self.page_width - 2 * self.frame_margin,
                self.page_height - 2 * self.frame_margin)

    def column_x(self, index: int) -> float:
        return self._column(index).x

    def span_width(self, start: int, span: int = 1) -> float:
        """Width from the start of column ``start`` to the end of the ``span``-th column."""
        if span < 1:
            raise ValueError(f"Span must be at least 1, got {span}.")
        first = self._column(start)
        last = self._column(start + span - 1)
        return last.x + last.width - first.x

    def _column(self, index: int) -> GridColumn:
        if not 0 <= index < len(self.columns):
            raise ValueError(f"Column {index} outside grid of {len(self.columns)} columns.")
        return self.columns[index]


@dataclass(frozen=True)
class LayoutContext:
    canvas: Any
    grid: GridSpec
    y: float
    logo_path: Optional[Path] = None

    def at(self, y: float) -> "LayoutContext":
        """Move the cursor to ``y``; a position above the cursor leaves it in place."""
        return replace(self, y=max(self.y, y))

    def advance(self, dy: float) -> "LayoutContext":
        return self.at(self.y + dy)

    def ensure_space(self, height: float) -> "LayoutContext":
        """Start a new page when a block of ``height`` mm would cross the bottom margin."""
        if self.y + height <= self.grid.bottom or self.y <= self.grid.top:
            return self
        logger.debug("Block of %.1f mm does not fit at y=%.1f, starting a new page", height, self.y)
        self.canvas.new_page()
        return replace(self, y=self.grid.top)


@dataclass(frozen=True)
class Field:
    """One labelled cell of a grid row."""
    label: str
    value: str
    column: int
    span: int = 1
    wrap: bool = False
    max_lines: Optional[int] = None
    font: FontSpec = field(default=VALUE)


def fit_to_lines(canvas, text: str, width: float, font: FontSpec, max_lines: int,
                 ellipsis: str = ELLIPSIS) -> str:
    """Shorten ``text`` word by word until it fits ``max_lines`` lines of ``width``.

    Text that already fits is returned unchanged. Otherwise the longest
    prefix of whole words that fits together with the ellipsis is kept.
    """
    if max_lines < 1:
        raise ValueError(f"max_lines must be at least 1, got {max_lines}.")
    if not text or canvas.count_lines(text, width, font) <= max_lines:
        return text
    fitted = ""
    for word in text.split():
        candidate = f"{fitted} {word}" if fitted else word
        if canvas.count_lines(candidate + ellipsis, width, font) > max_lines:
            break
        fitted = candidate
    return fitted + ellipsis


def _cell_text(canvas, f: Field, width: float) -> str:
    value = f.value if f.value else FALLBACK
    if f.max_lines is not None:
        value = fit_to_lines(canvas, value, width, f.font, f.max_lines)
    return value


def row_height(ctx: LayoutContext, fields: Sequence[Field]) -> float:
    """Height the row will take: the label line plus its tallest value."""
    value_lines = 1
    for f in fields:
        if f.wrap or f.max_lines is not None:
            width = ctx.grid.span_width(f.column, f.span) - CELL_PADDING
            text = _cell_text(ctx.canvas, f, width)
            value_lines = max(value_lines, ctx.canvas.count_lines(text, width, f.font))
    return LABEL_LINE_HEIGHT + value_lines * VALUE_LINE_HEIGHT


def render_row(ctx: LayoutContext, fields: Sequence[Field]) -> LayoutContext:
    """Draw labels on one line and the values below them.

    Fixed cells take one value line; wrapping cells grow downwards. The next
    row starts below the lowest cell.
    """
    ctx = ctx.ensure_space(row_height(ctx, fields))
    canvas = ctx.canvas
    top = ctx.y
    bottom = top + LABEL_LINE_HEIGHT + VALUE_LINE_HEIGHT
    for f in fields:
        x = ctx.grid.column_x(f.column)
        width = ctx.grid.span_width(f.column, f.span) - CELL_PADDING
        canvas.cell(x, top, width, LABEL_LINE_HEIGHT, f.label, LABEL)
        text = _cell_text(canvas, f, width)
        value_y = top + LABEL_LINE_HEIGHT
        if f.wrap or f.max_lines is not None:
            cell_bottom = canvas.multi_cell(x, value_y, width, VALUE_LINE_HEIGHT, text, f.font)
        else:
            canvas.cell(x, value_y, width, VALUE_LINE_HEIGHT, text, f.font)
            cell_bottom = value_y + VALUE_LINE_HEIGHT
        bottom = max(bottom, cell_bottom)
    return ctx.at(bottom)
