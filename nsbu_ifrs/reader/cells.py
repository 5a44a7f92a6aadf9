"""Normalized cell grid consumed by the detector and extractors.

Spreadsheet cells come in several shapes: plain values, rich text runs,
formulas with a cached result, hyperlinks, and error values. Each shape is a
small frozen variant and :func:`resolve_cell_value` is the single place that
turns a variant into the value used for parsing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from nsbu_ifrs.utils.parsing import normalize_text

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

__all__ = [
    "Cell",
    "CellValue",
    "ErrorValue",
    "Formula",
    "Hyperlink",
    "Plain",
    "RichText",
    "Sheet",
    "Workbook",
    "resolve_cell_value",
]


# =============================================================================
# Cell value variants
# =============================================================================


@dataclass(frozen=True)
class Plain:
    value: Any


@dataclass(frozen=True)
class RichText:
    text: str


@dataclass(frozen=True)
class Formula:
    """Formula cell; ``result`` is the cached value, never the expression."""

    result: Any
    expression: str = ""


@dataclass(frozen=True)
class Hyperlink:
    text: str
    target: str = ""


@dataclass(frozen=True)
class ErrorValue:
    code: str


CellValue = Plain | RichText | Formula | Hyperlink | ErrorValue

_RESOLVERS: dict[type, Callable[[Any], Any]] = {
    Plain: lambda v: v.value,
    RichText: lambda v: v.text,
    Formula: lambda v: v.result,
    Hyperlink: lambda v: v.text,
    ErrorValue: lambda _v: None,
}

_TYPE_TAGS: dict[type, str] = {
    Plain: "plain",
    RichText: "rich_text",
    Formula: "formula",
    Hyperlink: "hyperlink",
    ErrorValue: "error",
}


def resolve_cell_value(value: CellValue) -> Any:
    """Return the usable value of a cell variant.

    Raises
    ------
    TypeError
        If ``value`` is not one of the cell variants.
    """
    resolver = _RESOLVERS.get(type(value))
    if resolver is None:
        msg = f"Unsupported cell value shape: {type(value).__name__}"
        raise TypeError(msg)
    return resolver(value)


# =============================================================================
# Cell and grid
# =============================================================================


@dataclass(frozen=True)
class Cell:
    """One spreadsheet cell; row and col are 1-based."""

    value: Any
    raw_value: CellValue
    type: str
    row: int
    col: int
    formula_result: Any = None
    bold: bool = False
    indent: int = 0

    @classmethod
    def from_raw(cls, raw: CellValue | Any, row: int, col: int, *, bold: bool = False, indent: int = 0) -> Cell:
        """Wrap a variant (or a bare Python value) into a cell."""
        if not isinstance(raw, Plain | RichText | Formula | Hyperlink | ErrorValue):
            raw = Plain(raw)
        value = resolve_cell_value(raw)
        if isinstance(value, str) and not value.strip():
            value = None
        kind = "empty" if value is None and isinstance(raw, Plain) else _TYPE_TAGS[type(raw)]
        formula_result = raw.result if isinstance(raw, Formula) else None
        return cls(
            value=value,
            raw_value=raw,
            type=kind,
            row=row,
            col=col,
            formula_result=formula_result,
            bold=bold,
            indent=indent,
        )

    @classmethod
    def empty(cls, row: int, col: int) -> Cell:
        return cls(value=None, raw_value=Plain(None), type="empty", row=row, col=col)

    @property
    def is_empty(self) -> bool:
        return self.value is None

    @property
    def text(self) -> str:
        """Stripped string form of the resolved value ("" when empty)."""
        return "" if self.value is None else str(self.value).strip()

    @property
    def normalized(self) -> str:
        """Lower-cased, whitespace-collapsed text for keyword matching."""
        return normalize_text(self.value)


class Sheet:
    """Immutable grid of cells for one worksheet."""

    def __init__(self, name: str, cells: Iterable[Cell]) -> None:
        self.name = name
        self._cells: dict[tuple[int, int], Cell] = {}
        max_row = 0
        max_col = 0
        for cell in cells:
            if cell.type == "empty" and not cell.bold:
                continue
            self._cells[(cell.row, cell.col)] = cell
            max_row = max(max_row, cell.row)
            max_col = max(max_col, cell.col)
        self.row_count = max_row
        self.column_count = max_col

    @classmethod
    def from_values(
        cls,
        name: str,
        rows: Sequence[Sequence[Any]],
        *,
        bold_rows: Iterable[int] = (),
        indents: dict[int, int] | None = None,
    ) -> Sheet:
        """Build a sheet from nested Python lists.

        Parameters
        ----------
        name
            Sheet name.
        rows
            Row-major values; items may be bare values or cell variants.
        bold_rows
            1-based rows whose cells carry the bold flag.
        indents
            Optional 1-based row -> indent level.
        """
        bold = set(bold_rows)
        indents = indents or {}
        cells = [
            Cell.from_raw(value, r, c, bold=r in bold, indent=indents.get(r, 0))
            for r, row in enumerate(rows, start=1)
            for c, value in enumerate(row, start=1)
        ]
        return cls(name, cells)

    @property
    def is_empty(self) -> bool:
        return not self._cells

    def cell(self, row: int, col: int) -> Cell:
        return self._cells.get((row, col)) or Cell.empty(row, col)

    def row(self, row: int) -> list[Cell]:
        return [self.cell(row, col) for col in range(1, self.column_count + 1)]

    def row_text(self, row: int) -> str:
        """Normalized text of every non-empty cell in a row, space-joined."""
        return " ".join(c.normalized for c in self.row(row) if not c.is_empty)

    def iter_rows(self, start: int = 1, end: int | None = None) -> Iterator[tuple[int, list[Cell]]]:
        """Yield ``(row_number, cells)`` for rows ``start..end`` inclusive."""
        stop = self.row_count if end is None else min(end, self.row_count)
        for r in range(max(start, 1), stop + 1):
            yield r, self.row(r)


@dataclass(frozen=True)
class Workbook:
    """Ordered collection of sheets read from one source document."""

    sheets: tuple[Sheet, ...]
    source: str = ""

    @property
    def sheet_names(self) -> list[str]:
        return [s.name for s in self.sheets]

    def get(self, name: str) -> Sheet | None:
        return next((s for s in self.sheets if s.name == name), None)

    def first_non_empty(self) -> Sheet | None:
        return next((s for s in self.sheets if not s.is_empty), None)
