from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from .errors import ParseError


@dataclass(frozen=True)
class ReportLayout:
    """Where the pairwise table sits inside an EMIBD report.

    The report is free text. The table is found from two anchors:
    a line starting with ``start_prefix`` (the column headings follow
    ``heading_offset`` lines below it) and a later line containing
    ``end_marker`` (the last data row is ``end_offset`` lines above it).
    Rows are whitespace separated; fields ``first_field`` to
    ``first_field + n_fields - 1`` (0-based) are kept.
    """

    version: str
    start_prefix: str
    end_marker: str
    heading_offset: int
    end_offset: int
    first_field: int
    n_fields: int
    id_columns: Tuple[str, str]
    relatedness_column: str

    @property
    def min_fields(self) -> int:
        return self.first_field + self.n_fields

    def select(self, tokens: Sequence[str]) -> List[str]:
        return list(tokens[self.first_field:self.min_fields])


# Two identifiers followed by 19 coefficients per pair.
EMIBD9_LAYOUT = ReportLayout(
    version="emibd9",
    start_prefix="IBD",
    end_marker="Indiv genotypes",
    heading_offset=2,
    end_offset=4,
    first_field=1,
    n_fields=21,
    id_columns=("Indiv1", "Indiv2"),
    relatedness_column="r(1,2)",
)

LAYOUTS: Dict[str, ReportLayout] = {EMIBD9_LAYOUT.version: EMIBD9_LAYOUT}


def get_layout(version: str) -> ReportLayout:
    try:
        return LAYOUTS[version]
    except KeyError:
        raise ParseError(
            f"Unknown report layout '{version}' (known: {', '.join(sorted(LAYOUTS))})"
        ) from None


def find_table(lines: Sequence[str], layout: ReportLayout = EMIBD9_LAYOUT) -> Tuple[int, int, int]:
    """Locate the pairwise table.

    Returns:
        (heading, first_row, stop) line indices; data rows are
        ``lines[first_row:stop]`` and may be empty.
    """
    start = next(
        (i for i, ln in enumerate(lines) if ln.startswith(layout.start_prefix)),
        None,
    )
    if start is None:
        raise ParseError(
            f"No line starting with '{layout.start_prefix}' in report; "
            "EMIBD9 probably did not run to completion"
        )
    end = next(
        (i for i in range(start + 1, len(lines)) if layout.end_marker in lines[i]),
        None,
    )
    if end is None:
        raise ParseError(
            f"No line containing '{layout.end_marker}' after the IBD table; "
            "EMIBD9 probably did not run to completion"
        )

    heading = start + layout.heading_offset
    last = end - layout.end_offset
    if last < heading:
        raise ParseError(
            f"End of table (line {end + 1}) is too close to its heading (line {heading + 1})"
        )
    return heading, heading + 1, last + 1


def parse_report(text: str, layout: ReportLayout = EMIBD9_LAYOUT) -> pd.DataFrame:
    """Extract the raw pairwise table from the text of an EMIBD report.

    Columns are named from the heading line. Identifier columns are kept as
    strings, the relatedness column is float and the other coefficients are
    numeric wherever every value parses as a number.
    """
    lines = text.splitlines()
    heading, first_row, stop = find_table(lines, layout)

    head_tokens = lines[heading].split()
    if len(head_tokens) < layout.min_fields:
        raise ParseError(
            f"Heading line {heading + 1} has {len(head_tokens)} fields, "
            f"expected at least {layout.min_fields}"
        )
    columns = layout.select(head_tokens)
    required = list(layout.id_columns) + [layout.relatedness_column]
    absent = [c for c in required if c not in columns]
    if absent:
        raise ParseError(f"Report heading lacks column(s): {', '.join(absent)}")

    rows = []
    for i in range(first_row, stop):
        tokens = lines[i].split()
        if len(tokens) != len(head_tokens):
            raise ParseError(
                f"Report line {i + 1} has {len(tokens)} fields, "
                f"expected {len(head_tokens)} as in the heading: {lines[i]!r}"
            )
        rows.append(layout.select(tokens))

    raw = pd.DataFrame(rows, columns=columns, dtype=object)
    for col in columns:
        if col in layout.id_columns:
            raw[col] = raw[col].astype(str)
        elif col == layout.relatedness_column:
            try:
                raw[col] = pd.to_numeric(raw[col]).astype(float)
            except (TypeError, ValueError) as exc:
                raise ParseError(f"Non-numeric value in column '{col}': {exc}") from exc
        else:
            try:
                raw[col] = pd.to_numeric(raw[col])
            except (TypeError, ValueError):
                pass
    return raw


def read_report(path: str | Path, layout: ReportLayout = EMIBD9_LAYOUT) -> pd.DataFrame:
    path = Path(path)
    if not path.is_file():
        raise ParseError(f"EMIBD9 did not produce a report at {path}")
    return parse_report(path.read_text(errors="replace"), layout=layout)
