from __future__ import annotations

import numpy as np
import pandas as pd

from .ids import PlaceholderMap
from .report import EMIBD9_LAYOUT, ReportLayout


def _pair_indices(
    raw: pd.DataFrame,
    placeholders: PlaceholderMap,
    layout: ReportLayout,
) -> tuple[np.ndarray, np.ndarray]:
    col1, col2 = layout.id_columns
    rows = np.array([placeholders.index_of(p) for p in raw[col1]], dtype=int)
    cols = np.array([placeholders.index_of(p) for p in raw[col2]], dtype=int)
    return rows, cols


def assemble_matrix(
    raw: pd.DataFrame,
    placeholders: PlaceholderMap,
    layout: ReportLayout = EMIBD9_LAYOUT,
    mirror: bool = False,
) -> pd.DataFrame:
    """Build the N x N relatedness matrix labelled by original sample IDs.

    Each report record sets only the cell (first individual, second
    individual); cells for pairs not in the report stay NaN. With
    ``mirror=True`` the transposed cell is also filled when the report did
    not supply it.

    Raises:
        IndexError: a record names a placeholder outside [1, N].
    """
    n = placeholders.n
    rel = np.full((n, n), np.nan, dtype=np.float64)
    if len(raw):
        rows, cols = _pair_indices(raw, placeholders, layout)
        values = raw[layout.relatedness_column].to_numpy(dtype=np.float64)

        # Later records win when a pair is repeated.
        cell = rows * n + cols
        _, last = np.unique(cell[::-1], return_index=True)
        keep = np.sort(len(cell) - 1 - last)
        rows, cols, values = rows[keep], cols[keep], values[keep]

        rel[rows, cols] = values
        if mirror:
            unset = np.isnan(rel[cols, rows])
            rel[cols[unset], rows[unset]] = values[unset]

    labels = list(placeholders.labels)
    return pd.DataFrame(rel, index=labels, columns=labels)


def pair_table(
    raw: pd.DataFrame,
    placeholders: PlaceholderMap,
    layout: ReportLayout = EMIBD9_LAYOUT,
) -> pd.DataFrame:
    """Long-form (ind1, ind2, rel) table with original sample labels."""
    col1, col2 = layout.id_columns
    return pd.DataFrame(
        {
            "ind1": placeholders.restore(raw[col1]),
            "ind2": placeholders.restore(raw[col2]),
            "rel": raw[layout.relatedness_column].to_numpy(dtype=np.float64),
        }
    )
