from __future__ import annotations

import logging
import platform
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pandas as pd

from pyemibd import cli, io, plots, report, sim
from pyemibd.logs import PROGRESS, set_verbosity, verbosity_to_level
from tests.fake_estimator import install_fake_estimator


class TestGenotypeIO(unittest.TestCase):
    def test_read_chip_csv(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "chip.csv"
            path.write_text("ID,SNP1,SNP2,SNP3\n007,0,1,\nB x,2,-9,1\n")
            data = io.read_genotype_csv(path, missing=-9)
        self.assertEqual(data.sample_ids, ["007", "B x"])
        self.assertEqual(list(data.locus_ids), ["SNP1", "SNP2", "SNP3"])
        expected = np.array([[0, 1, np.nan], [2, np.nan, 1]])
        np.testing.assert_array_equal(data.genotypes, expected)

    def test_genotype_store_roundtrip(self) -> None:
        simdata = sim.simulate_genotypes(n_ind=5, n_loci=12, seed=3, missing_rate=0.2)
        data = simdata.to_genotype_data()
        with tempfile.TemporaryDirectory() as tmp:
            store = Path(tmp) / "geno.zarr"
            io.write_genotype_store(data, store)
            data2 = io.read_genotypes(store)
        self.assertEqual(data2.sample_ids, data.sample_ids)
        np.testing.assert_array_equal(data2.locus_ids, data.locus_ids)
        np.testing.assert_array_equal(data2.genotypes, data.genotypes)

    def test_select_samples(self) -> None:
        data = sim.simulate_genotypes(n_ind=4, n_loci=3, seed=0).to_genotype_data()
        sub = io.select_samples(data, [data.sample_ids[2], data.sample_ids[0]])
        np.testing.assert_array_equal(sub.genotypes, data.genotypes[[2, 0], :])
        with self.assertRaises(KeyError):
            io.select_samples(data, ["nope"])

    def test_result_store(self) -> None:
        raw = report.parse_report(sim.format_report([("1", "2", 0.5)]))
        rel = pd.DataFrame([[np.nan, 0.5], [np.nan, np.nan]], index=["A", "B"], columns=["A", "B"])
        with tempfile.TemporaryDirectory() as tmp:
            store = Path(tmp) / "res.zarr"
            io.write_result_store(rel, raw, store)
            rel2, raw2 = io.read_result_store(store)
        pd.testing.assert_frame_equal(rel2, rel)
        self.assertEqual(list(raw2.columns), list(raw.columns))
        self.assertEqual(raw2["Indiv2"].tolist(), ["2"])
        self.assertAlmostEqual(float(raw2["r(1,2)"][0]), 0.5)


class TestPlots(unittest.TestCase):
    def test_heatmap_png(self) -> None:
        rel = pd.DataFrame([[np.nan, 0.5], [np.nan, np.nan]], index=["A", "B"], columns=["A", "B"])
        with tempfile.TemporaryDirectory() as tmp:
            csv = Path(tmp) / "rel.csv"
            rel.to_csv(csv)
            out = Path(tmp) / "plots" / "rel.png"
            plots.plot_relatedness_csv(csv, out)
            self.assertTrue(out.is_file())


class TestLogs(unittest.TestCase):
    def test_verbosity_levels(self) -> None:
        self.assertEqual(verbosity_to_level(0), logging.ERROR)
        self.assertEqual(verbosity_to_level(1), logging.INFO)
        self.assertEqual(verbosity_to_level(2), PROGRESS)
        self.assertEqual(verbosity_to_level(5), logging.DEBUG)
        set_verbosity(3)
        self.assertEqual(logging.getLogger("pyemibd").level, logging.DEBUG)
        set_verbosity(None)


class TestCLI(unittest.TestCase):
    def test_simulate_then_parse(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            chip = tmp / "sim.csv"
            cli.main(["-v", "0", "simulate", "--n-ind", "3", "--n-loci", "10", "--seed", "1", "--out", str(chip)])
            rep = tmp / "run.ibd9"
            rep.write_text(sim.format_report([("1", "2", 0.5), ("2", "3", 0.25)]))

            prefix = str(tmp / "out" / "res")
            cli.main(["-v", "0", "parse", str(rep), "--genotypes", str(chip), "--mirror", "--prefix", prefix])

            rel = pd.read_csv(f"{prefix}.rel.csv", index_col=0)
            pairs = pd.read_csv(f"{prefix}.pairs.csv")
            self.assertEqual(rel.shape, (3, 3))
            self.assertAlmostEqual(rel.iloc[1, 0], 0.5)
            self.assertEqual(len(pairs), 2)

            png = tmp / "rel.png"
            cli.main(["-v", "0", "plot", f"{prefix}.rel.csv", "--out", str(png)])
            self.assertTrue(png.is_file())

    def test_parse_errors_exit(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            chip = tmp / "sim.csv"
            cli.main(["-v", "0", "simulate", "--n-ind", "2", "--n-loci", "4", "--out", str(chip)])
            rep = tmp / "empty.ibd9"
            rep.write_text("nothing here\n")
            with self.assertRaises(SystemExit):
                cli.main(["-v", "0", "parse", str(rep), "--genotypes", str(chip), "--prefix", str(tmp / "x")])

    @unittest.skipUnless(platform.system() in ("Linux", "Darwin"), "stand-in estimator is a POSIX script")
    def test_run_command(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            chip = tmp / "sim.csv"
            cli.main(["-v", "0", "simulate", "--n-ind", "3", "--n-loci", "20", "--seed", "2", "--out", str(chip)])
            install_fake_estimator(tmp / "install", report_text=sim.format_report([("1", "3", 0.2)]))

            prefix = str(tmp / "res")
            cli.main(
                [
                    "-v", "0", "run", str(chip),
                    "--emibd9-path", str(tmp / "install"),
                    "--outpath", str(tmp / "scratch"),
                    "--prefix", prefix,
                    "--store", str(tmp / "res.zarr"),
                ]
            )
            rel, raw = io.read_result_store(tmp / "res.zarr")
            self.assertAlmostEqual(rel.iloc[0, 2], 0.2)
            self.assertEqual(len(raw), 1)
            self.assertTrue(Path(f"{prefix}.raw.csv").is_file())


if __name__ == "__main__":
    unittest.main()
