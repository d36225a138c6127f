from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import numpy as np

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra import numpy as hnp

from pyemibd import assemble, control, encode, report, sim
from pyemibd.ids import PlaceholderMap, is_valid_placeholder


@st.composite
def _dosages_with_missing(draw):
    n_ind = draw(st.integers(min_value=1, max_value=8))
    n_loci = draw(st.integers(min_value=1, max_value=40))
    geno = draw(
        hnp.arrays(
            dtype=np.float64,
            shape=(n_ind, n_loci),
            elements=st.sampled_from([0.0, 1.0, 2.0]),
        )
    )
    mask = draw(hnp.arrays(dtype=np.bool_, shape=(n_ind, n_loci), elements=st.booleans()))
    geno = geno.copy()
    geno[mask] = np.nan
    return geno


_labels = st.lists(st.text(min_size=0, max_size=30), min_size=1, max_size=40)


@st.composite
def _pair_records(draw, n: int):
    idx = st.integers(min_value=1, max_value=n)
    rel = st.floats(min_value=-1.0, max_value=1.0, allow_nan=False, allow_infinity=False)
    return draw(st.lists(st.tuples(idx, idx, rel), min_size=0, max_size=25))


class TestEncodingProperties(unittest.TestCase):
    @settings(max_examples=60, deadline=None)
    @given(_dosages_with_missing())
    def test_digit_decode_recovers_dosages(self, geno: np.ndarray) -> None:
        pm = PlaceholderMap.from_labels([f"s{i}" for i in range(geno.shape[0])])
        lines = encode.encode_genotypes(geno, pm.placeholders)
        ids, codes = encode.decode_genotype_lines(lines)

        self.assertEqual(ids, list(pm.placeholders))
        missing = np.isnan(geno)
        np.testing.assert_array_equal(codes[~missing], geno[~missing].astype(np.int8))
        self.assertTrue(np.all(codes[missing] == encode.MISSING_CODE))

    @settings(max_examples=40, deadline=None)
    @given(
        st.integers(min_value=1, max_value=5),
        st.integers(min_value=1, max_value=5),
        st.integers(min_value=3, max_value=100) | st.integers(min_value=-100, max_value=-1),
    )
    def test_any_invalid_value_is_rejected(self, n_ind: int, n_loci: int, bad: int) -> None:
        geno = np.zeros((n_ind, n_loci))
        geno[n_ind - 1, n_loci - 1] = bad
        with self.assertRaises(encode.EncodingError):
            encode.encode_genotypes(geno, [str(i + 1) for i in range(n_ind)])


class TestPlaceholderProperties(unittest.TestCase):
    @settings(max_examples=80, deadline=None)
    @given(_labels)
    def test_bijection(self, labels) -> None:
        pm = PlaceholderMap.from_labels(labels)
        self.assertEqual(len(set(pm.placeholders)), len(labels))
        self.assertTrue(all(p.isdigit() and is_valid_placeholder(p) for p in pm.placeholders))
        self.assertEqual(pm.restore(pm.placeholders), list(labels))
        for i, p in enumerate(pm.placeholders):
            self.assertEqual(pm.index_of(p), i)


class TestControlProperties(unittest.TestCase):
    @settings(max_examples=40, deadline=None)
    @given(
        st.integers(min_value=1, max_value=10_000),
        st.integers(min_value=1, max_value=1_000_000),
        st.booleans(),
        st.integers(min_value=0, max_value=2**31 - 1),
        st.from_regex(r"[A-Za-z0-9_]{1,20}\.ibd9", fullmatch=True),
    )
    def test_control_roundtrip(self, n_ind, n_loci, inbreed, seed, outfile) -> None:
        rec = control.ControlRecord.for_run(n_ind, n_loci, inbreed=inbreed, seed=seed, output_file=outfile)
        with tempfile.TemporaryDirectory() as tmp:
            path = control.write_control_file(Path(tmp) / control.CONTROL_FILE, rec)
            self.assertEqual(len(path.read_text().splitlines()), 10)
            self.assertEqual(control.read_control_file(path), rec)


class TestReportProperties(unittest.TestCase):
    @settings(max_examples=60, deadline=None)
    @given(
        st.integers(min_value=0, max_value=30),
        st.integers(min_value=0, max_value=10),
        st.integers(min_value=0, max_value=20),
    )
    def test_anchor_offsets(self, n_preamble: int, n_trailer: int, n_rows: int) -> None:
        pairs = [(str(k + 1), str(k + 2), k / 100.0) for k in range(n_rows)]
        text = sim.format_report(pairs, n_preamble=n_preamble, n_trailer=n_trailer)
        raw = report.parse_report(text)

        self.assertEqual(len(raw), n_rows)
        self.assertEqual(raw["Indiv1"].tolist(), [p[0] for p in pairs])
        self.assertEqual(raw["Indiv2"].tolist(), [p[1] for p in pairs])
        np.testing.assert_allclose(raw["r(1,2)"].to_numpy(dtype=float), [p[2] for p in pairs])


class TestAssemblyProperties(unittest.TestCase):
    @settings(max_examples=60, deadline=None)
    @given(st.integers(min_value=1, max_value=8).flatmap(lambda n: st.tuples(st.just(n), _pair_records(n))))
    def test_only_reported_cells_are_set(self, case) -> None:
        n, records = case
        pm = PlaceholderMap.from_labels([f"L{i}" for i in range(n)])
        pairs = [(str(a), str(b), round(r, 4)) for a, b, r in records]
        raw = report.parse_report(sim.format_report(pairs))
        rel = assemble.assemble_matrix(raw, pm)

        expected = np.full((n, n), np.nan)
        for a, b, r in pairs:
            expected[int(a) - 1, int(b) - 1] = r
        np.testing.assert_allclose(rel.to_numpy(), expected)
        self.assertEqual(list(rel.index), list(pm.labels))


if __name__ == "__main__":
    unittest.main()
