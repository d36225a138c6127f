from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
import zarr


@dataclass
class GenotypeData:
    """Dosage matrix for a set of samples, as handed to EMIBD9.

    - n_ind:   number of individuals / samples
    - n_loci:  number of SNP loci
    - genotypes[i,s]: reference-allele dosage 0/1/2, NaN when missing
    """

    sample_ids: List[str]
    locus_ids: np.ndarray
    genotypes: np.ndarray  # shape (n_ind, n_loci), float64

    def __post_init__(self) -> None:
        if self.genotypes.shape != (len(self.sample_ids), len(self.locus_ids)):
            raise ValueError(
                f"Genotype matrix shape {self.genotypes.shape} does not match "
                f"{len(self.sample_ids)} samples x {len(self.locus_ids)} loci"
            )

    @property
    def n_ind(self) -> int:
        return int(self.genotypes.shape[0])

    @property
    def n_loci(self) -> int:
        return int(self.genotypes.shape[1])


def read_genotype_csv(path: str | Path, missing: float | None = None) -> GenotypeData:
    """Read a 'chip' CSV: first column sample ID, one 0/1/2 column per locus.

    Empty cells and NA are missing; ``missing`` adds a numeric marker
    (e.g. -9) that is also treated as missing.
    """
    path = Path(path)
    df = pd.read_csv(path, dtype=str)
    if df.shape[1] < 2:
        raise ValueError(f"Genotype file {path} must have an ID column and at least one locus")

    sample_ids = df.iloc[:, 0].astype(str).tolist()
    loci = df.iloc[:, 1:]
    try:
        geno = loci.apply(pd.to_numeric).to_numpy(dtype=np.float64)
    except ValueError as exc:
        raise ValueError(f"Genotype file {path} has non-numeric genotypes: {exc}") from exc
    if missing is not None:
        geno[geno == missing] = np.nan

    return GenotypeData(
        sample_ids=sample_ids,
        locus_ids=np.asarray(loci.columns, dtype=str),
        genotypes=geno,
    )


def write_genotype_csv(data: GenotypeData, path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(data.genotypes, columns=list(data.locus_ids))
    df.insert(0, "ID", data.sample_ids)
    df.to_csv(path, index=False, float_format="%.0f")


def write_genotype_store(data: GenotypeData, store_path: str | Path) -> None:
    """Write GenotypeData to a Zarr store.

    Layout:
      - sample_ids: (n_ind,)
      - locus_ids:  (n_loci,)
      - genotypes:  (n_ind, n_loci) int8, -1 for missing
    """
    store_path = Path(store_path)
    store_path.parent.mkdir(parents=True, exist_ok=True)

    g = zarr.open_group(store_path.as_posix(), mode="w")
    n_ind, n_loci = data.n_ind, data.n_loci

    g.create_dataset(
        "sample_ids",
        data=np.asarray(data.sample_ids, dtype="U"),
        overwrite=True,
    )
    g.create_dataset(
        "locus_ids",
        data=np.asarray(data.locus_ids, dtype="U"),
        chunks=(max(min(n_loci, 4096), 1),),
        overwrite=True,
    )

    # Chunk along loci; int8 keeps dosage matrices small.
    geno = np.where(np.isnan(data.genotypes), -1, data.genotypes).astype(np.int8)
    g.create_dataset(
        "genotypes",
        data=geno,
        chunks=(max(n_ind, 1), max(min(n_loci, 1024), 1)),
        overwrite=True,
    )


def read_genotype_store(store_path: str | Path) -> GenotypeData:
    g = zarr.open_group(Path(store_path).as_posix(), mode="r")
    geno = np.asarray(g["genotypes"][:], dtype=np.float64)
    geno[geno < 0] = np.nan
    return GenotypeData(
        sample_ids=[str(s) for s in np.asarray(g["sample_ids"][:])],
        locus_ids=np.asarray(g["locus_ids"][:]).astype(str),
        genotypes=geno,
    )


def read_genotypes(path: str | Path, missing: float | None = None) -> GenotypeData:
    """Read a chip CSV, or a Zarr store when the path is a directory."""
    path = Path(path)
    if path.is_dir():
        return read_genotype_store(path)
    return read_genotype_csv(path, missing=missing)


def select_samples(data: GenotypeData, sample_ids: Sequence[str]) -> GenotypeData:
    """Restrict to the named samples, in the order given."""
    index = {sid: i for i, sid in enumerate(data.sample_ids)}
    missing = [s for s in sample_ids if s not in index]
    if missing:
        raise KeyError(f"Sample ID(s) not found: {', '.join(missing)}")
    idx = np.asarray([index[s] for s in sample_ids], dtype=int)
    return GenotypeData(
        sample_ids=[data.sample_ids[i] for i in idx],
        locus_ids=data.locus_ids,
        genotypes=data.genotypes[idx, :],
    )


def write_result_store(rel: pd.DataFrame, raw: pd.DataFrame, store_path: str | Path) -> None:
    """Write a relatedness matrix and the raw EMIBD9 table to a Zarr store.

    Layout:
      - labels:     (n_ind,)
      - rel:        (n_ind, n_ind) float64, NaN where unset
      - raw/col<k>: one array per raw-table column; names in raw.attrs
    """
    store_path = Path(store_path)
    store_path.parent.mkdir(parents=True, exist_ok=True)
    g = zarr.open_group(store_path.as_posix(), mode="w")

    g.create_dataset("labels", data=np.asarray(rel.index, dtype="U"), overwrite=True)
    g.create_dataset("rel", data=rel.to_numpy(dtype=np.float64), overwrite=True)

    raw_group = g.require_group("raw")
    raw_group.attrs["columns"] = [str(c) for c in raw.columns]
    for k in range(raw.shape[1]):
        values = raw.iloc[:, k]
        if pd.api.types.is_numeric_dtype(values):
            arr = values.to_numpy(dtype=np.float64)
        else:
            arr = values.astype(str).to_numpy(dtype="U")
        raw_group.create_dataset(f"col{k}", data=arr, overwrite=True)


def read_result_store(store_path: str | Path) -> Tuple[pd.DataFrame, pd.DataFrame]:
    g = zarr.open_group(Path(store_path).as_posix(), mode="r")
    labels = [str(s) for s in np.asarray(g["labels"][:])]
    rel = pd.DataFrame(np.asarray(g["rel"][:]), index=labels, columns=labels)

    raw_group = g["raw"]
    columns = list(raw_group.attrs["columns"])
    raw = pd.DataFrame(
        {name: np.asarray(raw_group[f"col{k}"][:]) for k, name in enumerate(columns)},
        columns=columns,
    )
    return rel, raw
