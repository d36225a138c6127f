from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import List

from .errors import ConfigurationError

CONTROL_FILE = "MyData.par"
GENOTYPE_FILE = "EMIBD9_Gen.dat"
REPORT_FILE = "EMIBD9_Res.ibd9"


@dataclass(frozen=True)
class ControlRecord:
    """Parameters of one EMIBD9 run, in control-file order.

    - data_form: 2 = one digit (0/1/2, 3 missing) per SNP genotype
    - inbreed: allow inbreeding when estimating IBD coefficients
    - rnd_delta0: 1 = random initial delta values
    - em_method: 1 = EM estimation
    - out_allele_freq: 0 = do not report allele frequencies
    """

    n_ind: int
    n_loci: int
    data_form: int
    inbreed: bool
    genotype_file: str
    output_file: str
    seed: int
    rnd_delta0: int
    em_method: int
    out_allele_freq: int

    @classmethod
    def for_run(
        cls,
        n_ind: int,
        n_loci: int,
        inbreed: bool = True,
        seed: int = 42,
        output_file: str = REPORT_FILE,
        genotype_file: str = GENOTYPE_FILE,
    ) -> "ControlRecord":
        return cls(
            n_ind=int(n_ind),
            n_loci=int(n_loci),
            data_form=2,
            inbreed=bool(inbreed),
            genotype_file=genotype_file,
            output_file=output_file,
            seed=int(seed),
            rnd_delta0=1,
            em_method=1,
            out_allele_freq=0,
        )

    def lines(self) -> List[str]:
        values = []
        for f in fields(self):
            v = getattr(self, f.name)
            if isinstance(v, bool):
                v = int(v)
            values.append(str(v))
        return values


def write_control_file(path: str | Path, record: ControlRecord) -> Path:
    """Write the 10-line parameter file, replacing any existing file."""
    path = Path(path)
    path.write_text("\n".join(record.lines()) + "\n")
    return path


def read_control_file(path: str | Path) -> ControlRecord:
    lines = [ln.strip() for ln in Path(path).read_text().splitlines() if ln.strip()]
    names = [f.name for f in fields(ControlRecord)]
    if len(lines) != len(names):
        raise ConfigurationError(
            f"Control file {path} has {len(lines)} values, expected {len(names)}"
        )
    raw = dict(zip(names, lines))
    try:
        return ControlRecord(
            n_ind=int(raw["n_ind"]),
            n_loci=int(raw["n_loci"]),
            data_form=int(raw["data_form"]),
            inbreed=bool(int(raw["inbreed"])),
            genotype_file=raw["genotype_file"],
            output_file=raw["output_file"],
            seed=int(raw["seed"]),
            rnd_delta0=int(raw["rnd_delta0"]),
            em_method=int(raw["em_method"]),
            out_allele_freq=int(raw["out_allele_freq"]),
        )
    except ValueError as exc:
        raise ConfigurationError(f"Control file {path} is malformed: {exc}") from exc
