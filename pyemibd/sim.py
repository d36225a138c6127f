from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .io import GenotypeData
from .report import EMIBD9_LAYOUT, ReportLayout


@dataclass
class SimulatedData:
    genotypes: np.ndarray  # (n_ind, n_loci), values 0/1/2, NaN missing
    locus_ids: np.ndarray  # (n_loci,)
    sample_ids: np.ndarray # (n_ind,)

    def to_genotype_data(self) -> GenotypeData:
        return GenotypeData(
            sample_ids=self.sample_ids.tolist(),
            locus_ids=self.locus_ids,
            genotypes=self.genotypes,
        )


def simulate_genotypes(
    n_ind: int,
    n_loci: int,
    seed: Optional[int] = None,
    maf_min: float = 0.05,
    maf_max: float = 0.5,
    missing_rate: float = 0.0,
) -> SimulatedData:
    """Simulate unrelated SNP dosages with shared allele frequencies."""
    rng = np.random.default_rng(seed)

    # Allele frequencies per locus; dosages Binomial(2, p_s).
    p = rng.uniform(maf_min, maf_max, size=n_loci)
    genotypes = rng.binomial(2, p[None, :], size=(n_ind, n_loci)).astype(np.float64)

    if missing_rate > 0:
        genotypes[rng.random(size=genotypes.shape) < missing_rate] = np.nan

    locus_ids = np.array([f"SNP{s+1}" for s in range(n_loci)], dtype=str)
    # Labels EMIBD9 would reject (spaces, '/', > 20 chars) to exercise remapping.
    sample_ids = np.array(
        [f"sample {i+1}/population_with_a_long_name" for i in range(n_ind)],
        dtype=str,
    )

    return SimulatedData(genotypes=genotypes, locus_ids=locus_ids, sample_ids=sample_ids)


# Coefficient columns of the EMIBD9 pairwise table, relatedness first.
EMIBD9_COEFFICIENTS: Tuple[str, ...] = (
    ("r(1,2)",)
    + tuple(f"Delta{k}" for k in range(1, 10))
    + ("F1", "F2", "Theta", "k0", "k1", "k2", "Phi", "LnL(R)", "LnL(U)")
)

PairRecord = Tuple[str, str, float]


def all_pairs(placeholders: Sequence[str], relatedness: float = 0.0) -> List[PairRecord]:
    """Ordered pairs i < j with a constant relatedness value."""
    return [
        (placeholders[i], placeholders[j], relatedness)
        for i in range(len(placeholders))
        for j in range(i + 1, len(placeholders))
    ]


def format_report(
    pairs: Iterable[PairRecord],
    layout: ReportLayout = EMIBD9_LAYOUT,
    n_preamble: int = 6,
    n_trailer: int = 3,
) -> str:
    """Render pair records as an EMIBD9-style report.

    Only the parts the parser relies on are reproduced: the start anchor,
    the heading ``layout.heading_offset`` lines below it, the data rows and
    the end anchor ``layout.end_offset`` lines after the last row.
    Coefficients other than relatedness are written as zero.
    """
    n_lead = layout.first_field
    columns = list(layout.id_columns) + list(EMIBD9_COEFFICIENTS)
    columns = columns[: layout.n_fields]

    lines = [f"EMIBD9 simulated run, line {k + 1}" for k in range(n_preamble)]
    lines.append(f"{layout.start_prefix} coefficient estimates")
    lines.extend("=" * 40 for _ in range(layout.heading_offset - 1))
    lines.append(" ".join(["Pair"] * n_lead + columns))

    for k, (id1, id2, rel) in enumerate(pairs):
        coefs = [f"{float(rel):.4f}"] + ["0.0000"] * (len(columns) - 3)
        lead = [str(k + 1)] * n_lead
        lines.append(" ".join(lead + [str(id1), str(id2)] + coefs))

    lines.extend("-" * 40 for _ in range(layout.end_offset - 1))
    lines.append(f"{layout.end_marker} and allele frequencies")
    lines.extend(f"trailer {k + 1}" for k in range(n_trailer))
    return "\n".join(lines) + "\n"
