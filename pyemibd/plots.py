from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


def plot_relatedness_heatmap(
    rel: pd.DataFrame,
    out_png: Optional[Path] = None,
    show: bool = False,
    title: str = "EMIBD9 pairwise relatedness",
    cmap: str = "viridis",
) -> plt.Figure:
    """Heatmap of a relatedness matrix; unset cells are left blank."""
    values = np.ma.masked_invalid(rel.to_numpy(dtype=np.float64))
    n = values.shape[0]
    size = min(max(4.0, 0.25 * n + 2.0), 20.0)

    fig, ax = plt.subplots(figsize=(size, size))
    im = ax.imshow(values, cmap=cmap, interpolation="nearest")
    fig.colorbar(im, ax=ax, shrink=0.8, label="r")

    # Tick labels only stay readable for small matrices.
    if n <= 50:
        labels = [str(s) for s in rel.index]
        ax.set_xticks(np.arange(n))
        ax.set_yticks(np.arange(n))
        ax.set_xticklabels(labels, rotation=90, fontsize="x-small")
        ax.set_yticklabels(labels, fontsize="x-small")

    ax.set_title(title)
    fig.tight_layout()
    if out_png is not None:
        out_png = Path(out_png)
        out_png.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_png, dpi=150)
    if show:
        plt.show()
    return fig


def plot_relatedness_csv(rel_csv: Path, out_png: Path) -> None:
    """Heatmap from a matrix CSV written by the CLI (labels in first column)."""
    rel = pd.read_csv(rel_csv, index_col=0)
    fig = plot_relatedness_heatmap(rel, out_png=out_png)
    plt.close(fig)
