from __future__ import annotations

import logging
import numbers
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from . import assemble, control, encode, invoke, plots, report
from .errors import ConfigurationError
from .ids import PlaceholderMap
from .logs import MAX_VERBOSITY, PROGRESS, set_verbosity

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Caller options for one EMIBD9 run.

    emibd9_path: folder holding EM_IBD_P (EM_IBD_P.exe and its DLLs on Windows).
    outfile:     report file name EMIBD9 writes inside the scratch directory.
    outpath:     scratch directory; a fresh temporary directory when None.
    inbreed:     allow inbreeding when estimating IBD coefficients.
    seed:        random seed passed to EMIBD9.
    plot_out:    show the relatedness heatmap interactively.
    plot_dir / plot_file: save the heatmap as <plot_dir>/<plot_file>.png.
    verbosity:   0 silent ... 5 full report; None keeps the default.
    timeout:     seconds before EMIBD9 is killed; None waits forever.
    """

    emibd9_path: Path = Path(".")
    outfile: str = control.REPORT_FILE
    outpath: Optional[Path] = None
    inbreed: bool = True
    seed: int = 42
    plot_out: bool = False
    plot_dir: Optional[Path] = None
    plot_file: Optional[str] = None
    verbosity: Optional[int] = None
    timeout: Optional[float] = None
    missing: Optional[float] = None
    layout: report.ReportLayout = report.EMIBD9_LAYOUT

    def validate(self) -> None:
        if not self.outfile or Path(self.outfile).name != self.outfile:
            raise ConfigurationError(
                f"outfile must be a bare file name, got {self.outfile!r}"
            )
        if any(ch.isspace() for ch in self.outfile):
            raise ConfigurationError("outfile must not contain whitespace")
        if self.outfile in (control.CONTROL_FILE, control.GENOTYPE_FILE):
            raise ConfigurationError(f"outfile {self.outfile!r} clashes with an EMIBD9 input file")
        if isinstance(self.seed, bool) or not isinstance(self.seed, numbers.Integral):
            raise ConfigurationError(f"seed must be an integer, got {self.seed!r}")
        if self.timeout is not None and (
            isinstance(self.timeout, bool) or not isinstance(self.timeout, numbers.Real)
        ):
            raise ConfigurationError(f"timeout must be a number of seconds, got {self.timeout!r}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout!r}")
        if self.verbosity is not None and not 0 <= self.verbosity <= MAX_VERBOSITY:
            raise ConfigurationError(
                f"verbosity must be between 0 and {MAX_VERBOSITY}, got {self.verbosity!r}"
            )


@dataclass
class EMIBDResult:
    """rel: N x N relatedness labelled by sample; raw: EMIBD9 pairwise table."""

    rel: pd.DataFrame
    raw: pd.DataFrame


def prepare_inputs(
    scratch_dir: Path,
    codes: np.ndarray,
    placeholders: PlaceholderMap,
    config: RunConfig,
) -> control.ControlRecord:
    """Write the control and genotype files EMIBD9 reads."""
    record = control.ControlRecord.for_run(
        n_ind=codes.shape[0],
        n_loci=codes.shape[1],
        inbreed=config.inbreed,
        seed=config.seed,
        output_file=config.outfile,
    )
    control.write_control_file(scratch_dir / control.CONTROL_FILE, record)
    encode.write_genotype_file(
        scratch_dir / record.genotype_file,
        codes,
        placeholders.placeholders,
        missing=encode.MISSING_CODE,
    )
    logger.debug("Wrote %s and %s in %s", control.CONTROL_FILE, record.genotype_file, scratch_dir)
    return record


def run_emibd9(
    genotypes,
    sample_ids: Sequence[str],
    config: Optional[RunConfig] = None,
) -> EMIBDResult:
    """Run EMIBD9 on a dosage matrix and return its pairwise relatedness.

    Args:
        genotypes: (n_ind, n_loci) dosages 0/1/2 with NaN (or
            ``config.missing``) for missing calls, rows in ``sample_ids`` order.
        sample_ids: one label per row; any string is accepted.
        config: run options, defaults to ``RunConfig()``.

    Raises:
        ConfigurationError, DependencyMissingError, EncodingError,
        EstimatorTimeoutError, ParseError, IndexError.
    """
    config = config or RunConfig()
    config.validate()
    if config.verbosity is not None:
        set_verbosity(config.verbosity)

    placeholders = PlaceholderMap.from_labels(sample_ids)
    logger.info("Starting EMIBD9 run for %d individuals", placeholders.n)

    # Fail before anything is written if the install is incomplete.
    program = invoke.resolve_program()
    invoke.check_dependencies(config.emibd9_path, program)

    codes = encode.genotype_codes(genotypes, missing=config.missing)
    if codes.shape[0] != placeholders.n:
        raise ConfigurationError(
            f"Genotype matrix has {codes.shape[0]} rows but {placeholders.n} sample IDs were given"
        )

    if config.outpath is None:
        scratch_dir = Path(tempfile.mkdtemp(prefix="emibd9_"))
    else:
        scratch_dir = Path(config.outpath)
        scratch_dir.mkdir(parents=True, exist_ok=True)

    record = prepare_inputs(scratch_dir, codes, placeholders, config)
    # Drop any report left by an earlier run in this directory.
    (scratch_dir / record.output_file).unlink(missing_ok=True)
    invoke.stage_program(config.emibd9_path, scratch_dir, program)
    invoke.run_estimator(scratch_dir, program, timeout=config.timeout)

    raw = report.read_report(scratch_dir / record.output_file, layout=config.layout)
    rel = assemble.assemble_matrix(raw, placeholders, layout=config.layout)
    logger.log(PROGRESS, "Parsed %d pairwise records from %s", len(raw), record.output_file)

    if config.plot_out or config.plot_file:
        out_png = None
        if config.plot_file:
            out_png = Path(config.plot_dir or scratch_dir) / f"{config.plot_file}.png"
        fig = plots.plot_relatedness_heatmap(rel, out_png=out_png, show=config.plot_out)
        plt.close(fig)
        if out_png is not None:
            logger.log(PROGRESS, "Saved relatedness heatmap to %s", out_png)

    logger.debug(
        "Returning EMIBDResult:\n"
        "  rel -- %d x %d matrix of relatedness (%d cells set)\n"
        "  raw -- raw EMIBD9 results table (%d rows x %d columns)",
        rel.shape[0],
        rel.shape[1],
        int(rel.notna().to_numpy().sum()),
        raw.shape[0],
        raw.shape[1],
    )
    logger.info("Completed EMIBD9 run")
    return EMIBDResult(rel=rel, raw=raw)
