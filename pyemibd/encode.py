from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError, EncodingError
from .ids import is_valid_placeholder

VALID_DOSAGES = (0, 1, 2)

# EMIBD9 reads '3' as a missing genotype. Every valid dosage must stay
# strictly below it or a real call would be read back as missing.
MISSING_CODE = 3


def _missing_mask(geno: np.ndarray, missing: Optional[float]) -> np.ndarray:
    mask = np.isnan(geno)
    if missing is not None and not np.isnan(missing):
        mask |= geno == missing
    return mask


def genotype_codes(
    genotypes,
    missing: Optional[float] = None,
) -> np.ndarray:
    """Validate a dosage matrix and return it as EMIBD9 digit codes.

    Args:
        genotypes: (n_ind, n_loci) array-like of dosages 0/1/2; missing
            entries are NaN (or None) and/or equal to ``missing``.
        missing: optional extra marker for missing cells (e.g. -9).

    Returns:
        (n_ind, n_loci) int8 array with values in {0, 1, 2, MISSING_CODE}.
    """
    try:
        geno = np.asarray(genotypes, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Genotype matrix is not numeric: {exc}") from exc
    if geno.ndim != 2:
        raise ConfigurationError(
            f"Genotype matrix must be 2-D (individuals x loci), got shape {geno.shape}"
        )
    if geno.shape[1] == 0:
        raise ConfigurationError("Genotype matrix has no loci.")

    is_missing = _missing_mask(geno, missing)
    is_valid = np.isin(geno, VALID_DOSAGES)
    bad = ~(is_valid | is_missing)
    if bad.any():
        i, s = np.argwhere(bad)[0]
        raise EncodingError(
            f"{int(bad.sum())} genotype(s) outside {{0,1,2,missing}}; "
            f"first at individual {i}, locus {s}: {geno[i, s]!r}"
        )

    codes = np.where(is_missing, MISSING_CODE, geno)
    return codes.astype(np.int8)


def encode_genotypes(
    genotypes,
    placeholders: Sequence[str],
    missing: Optional[float] = None,
) -> List[str]:
    """Render the EMIBD9 genotype file as lines (header + one per individual)."""
    codes = genotype_codes(genotypes, missing=missing)
    placeholders = [str(p) for p in placeholders]
    if codes.shape[0] != len(placeholders):
        raise ConfigurationError(
            f"Genotype matrix has {codes.shape[0]} individuals but "
            f"{len(placeholders)} identifiers were supplied"
        )
    invalid = [p for p in placeholders if not is_valid_placeholder(p)]
    if invalid:
        raise ConfigurationError(f"Identifier {invalid[0]!r} is not accepted by EMIBD9")

    # One ASCII digit per locus; rows become contiguous byte strings.
    digits = (codes + ord("0")).astype(np.uint8)
    lines = [" ".join(placeholders)]
    lines.extend(row.tobytes().decode("ascii") for row in digits)
    return lines


def write_genotype_file(
    path: str | Path,
    genotypes,
    placeholders: Sequence[str],
    missing: Optional[float] = None,
) -> Path:
    path = Path(path)
    lines = encode_genotypes(genotypes, placeholders, missing=missing)
    path.write_text("\n".join(lines) + "\n")
    return path


def decode_genotype_lines(lines: Sequence[str]) -> Tuple[List[str], np.ndarray]:
    """Read an encoded genotype file back into identifiers and digit codes."""
    lines = [ln.rstrip("\r\n") for ln in lines if ln.strip()]
    if not lines:
        raise EncodingError("Genotype file is empty")
    ids = lines[0].split()
    body = lines[1:]
    if len(body) != len(ids):
        raise EncodingError(
            f"Genotype file header lists {len(ids)} individuals but has {len(body)} rows"
        )
    widths = {len(row) for row in body}
    if len(widths) > 1:
        raise EncodingError("Genotype rows have differing numbers of loci")
    if not body:
        return ids, np.zeros((0, 0), dtype=np.int8)
    try:
        raw = np.frombuffer("".join(body).encode("ascii"), dtype=np.uint8)
    except UnicodeEncodeError as exc:
        raise EncodingError("Genotype rows contain non-digit characters") from exc
    codes = raw.astype(np.int16) - ord("0")
    if ((codes < 0) | (codes > MISSING_CODE)).any():
        raise EncodingError("Genotype rows contain characters other than 0-3")
    return ids, codes.reshape(len(body), widths.pop()).astype(np.int8)


def read_genotype_file(path: str | Path) -> Tuple[List[str], np.ndarray]:
    return decode_genotype_lines(Path(path).read_text().splitlines())
