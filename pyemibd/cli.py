from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from . import assemble, io, plots, report, sim
from .errors import EMIBDError
from .ids import PlaceholderMap
from .logs import PROGRESS, configure_logging
from .pipeline import RunConfig, run_emibd9

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pyemibd",
        description="Run EMIBD9 on a genotype matrix and collect pairwise relatedness.",
    )
    p.add_argument(
        "-v",
        "--verbosity",
        type=int,
        choices=range(0, 6),
        default=2,
        help="0 silent, 1 begin/end, 2 progress, 3 progress and summary, 5 full (default: 2).",
    )

    sub = p.add_subparsers(dest="command", required=True)

    # Full run: encode, invoke EMIBD9, parse, assemble.
    run = sub.add_parser("run", help="Run EMIBD9 on a chip CSV or genotype Zarr store.")
    run.add_argument("genotypes", type=Path, help="Chip CSV (ID,SNP1,...) or Zarr store")
    run.add_argument(
        "--emibd9-path",
        type=Path,
        default=Path("."),
        help="Folder containing EM_IBD_P (EM_IBD_P.exe + DLLs on Windows) (default: .).",
    )
    run.add_argument(
        "--outfile",
        default="EMIBD9_Res.ibd9",
        help="Name of the EMIBD9 report file (default: EMIBD9_Res.ibd9).",
    )
    run.add_argument(
        "--outpath",
        type=Path,
        default=None,
        help="Scratch directory for EMIBD9 files (default: new temporary directory).",
    )
    run.add_argument(
        "--no-inbreed",
        action="store_true",
        help="Do not allow inbreeding when estimating IBD coefficients.",
    )
    run.add_argument("--seed", type=int, default=42, help="EMIBD9 random seed (default: 42).")
    run.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort EMIBD9 after this many seconds (default: no limit).",
    )
    run.add_argument(
        "--missing",
        type=float,
        default=None,
        help="Numeric genotype value meaning missing, in addition to empty cells.",
    )
    run.add_argument(
        "--samples",
        type=str,
        nargs="+",
        default=None,
        help="Subset of sample IDs to include (default: all).",
    )
    run.add_argument(
        "--prefix",
        type=str,
        required=True,
        help="Output prefix: writes <prefix>.rel.csv, <prefix>.raw.csv and <prefix>.pairs.csv.",
    )
    run.add_argument(
        "--store",
        type=Path,
        default=None,
        help="Also write matrix and raw table to this Zarr store.",
    )
    run.add_argument("--plot-dir", type=Path, default=None, help="Directory for the heatmap.")
    run.add_argument(
        "--plot-file",
        type=str,
        default=None,
        help="Heatmap base name (PNG); no heatmap is saved when omitted.",
    )
    run.add_argument("--plot", action="store_true", help="Show the heatmap interactively.")

    # Parse an existing report without running EMIBD9.
    parse = sub.add_parser("parse", help="Parse an existing EMIBD9 report.")
    parse.add_argument("report", type=Path, help="EMIBD9 report (.ibd9)")
    parse.add_argument(
        "--genotypes",
        type=Path,
        required=True,
        help="Genotype input of the run, used for the sample order and labels.",
    )
    parse.add_argument(
        "--layout",
        choices=sorted(report.LAYOUTS),
        default=report.EMIBD9_LAYOUT.version,
        help="Report layout version (default: emibd9).",
    )
    parse.add_argument(
        "--mirror",
        action="store_true",
        help="Fill (j,i) from (i,j) when the report lists only one ordering.",
    )
    parse.add_argument("--prefix", type=str, required=True, help="Output prefix.")

    # Simulated inputs.
    simulate = sub.add_parser("simulate", help="Write a simulated chip CSV.")
    simulate.add_argument("--n-ind", type=int, default=20)
    simulate.add_argument("--n-loci", type=int, default=500)
    simulate.add_argument("--seed", type=int, default=None)
    simulate.add_argument("--missing-rate", type=float, default=0.0)
    simulate.add_argument("--out", type=Path, required=True, help="Output chip CSV.")
    simulate.add_argument("--store", type=Path, default=None, help="Also write a Zarr store.")

    plot = sub.add_parser("plot", help="Heatmap of a relatedness matrix CSV.")
    plot.add_argument("rel_csv", type=Path, help="Matrix CSV written by 'run' or 'parse'.")
    plot.add_argument("--out", type=Path, required=True, help="Output PNG.")

    return p


def _write_outputs(
    prefix: str,
    rel: pd.DataFrame,
    raw: pd.DataFrame,
    pairs: pd.DataFrame,
) -> None:
    base = Path(prefix)
    base.parent.mkdir(parents=True, exist_ok=True)
    rel.to_csv(f"{prefix}.rel.csv")
    raw.to_csv(f"{prefix}.raw.csv", index=False)
    pairs.to_csv(f"{prefix}.pairs.csv", index=False)
    logger.log(PROGRESS, "Wrote %s.rel.csv, %s.raw.csv and %s.pairs.csv", prefix, prefix, prefix)


def cmd_run(args: argparse.Namespace) -> None:
    data = io.read_genotypes(args.genotypes, missing=args.missing)
    if args.samples:
        try:
            data = io.select_samples(data, args.samples)
        except KeyError as e:
            raise SystemExit(str(e.args[0])) from e

    config = RunConfig(
        emibd9_path=args.emibd9_path,
        outfile=args.outfile,
        outpath=args.outpath,
        inbreed=not args.no_inbreed,
        seed=args.seed,
        plot_out=args.plot,
        plot_dir=args.plot_dir,
        plot_file=args.plot_file,
        verbosity=args.verbosity,
        timeout=args.timeout,
    )
    result = run_emibd9(data.genotypes, data.sample_ids, config)

    placeholders = PlaceholderMap.from_labels(data.sample_ids)
    pairs = assemble.pair_table(result.raw, placeholders)
    _write_outputs(args.prefix, result.rel, result.raw, pairs)
    if args.store is not None:
        io.write_result_store(result.rel, result.raw, args.store)
        logger.log(PROGRESS, "Wrote result store: %s", args.store)


def cmd_parse(args: argparse.Namespace) -> None:
    data = io.read_genotypes(args.genotypes)
    placeholders = PlaceholderMap.from_labels(data.sample_ids)
    layout = report.get_layout(args.layout)

    raw = report.read_report(args.report, layout=layout)
    rel = assemble.assemble_matrix(raw, placeholders, layout=layout, mirror=args.mirror)
    pairs = assemble.pair_table(raw, placeholders, layout=layout)
    _write_outputs(args.prefix, rel, raw, pairs)

    n_set = int(np.isfinite(rel.to_numpy()).sum())
    print(f"Parsed {len(raw)} pairs; {n_set} of {rel.size} matrix cells set")


def cmd_simulate(args: argparse.Namespace) -> None:
    simdata = sim.simulate_genotypes(
        n_ind=args.n_ind,
        n_loci=args.n_loci,
        seed=args.seed,
        missing_rate=args.missing_rate,
    )
    data = simdata.to_genotype_data()
    io.write_genotype_csv(data, args.out)
    print(f"Wrote chip file: {args.out}")
    if args.store is not None:
        io.write_genotype_store(data, args.store)
        print(f"Wrote genotype Zarr store: {args.store}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbosity)

    try:
        if args.command == "run":
            cmd_run(args)
        elif args.command == "parse":
            cmd_parse(args)
        elif args.command == "simulate":
            cmd_simulate(args)
        elif args.command == "plot":
            plots.plot_relatedness_csv(rel_csv=args.rel_csv, out_png=args.out)
        else:
            parser.error(f"Unknown command {args.command}")
    except (EMIBDError, IndexError) as exc:
        raise SystemExit(f"{type(exc).__name__}: {exc}") from exc


if __name__ == "__main__":
    main()
