"""
Tests for the command line scripts.
"""
import csv
import importlib.util
from pathlib import Path

import pandas as pd
import pytest

SCRIPTS = Path(__file__).resolve().parent.parent / "scripts"

READ = 1
WRITE = 4


def load_script(relpath):
    path = SCRIPTS / relpath
    spec = importlib.util.spec_from_file_location(path.stem, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def analyse_trace():
    return load_script("preprocess/analyse_trace.py")


@pytest.fixture(scope="module")
def gem5_to_qemu():
    return load_script("preprocess/gem5_to_qemu.py")


@pytest.fixture(scope="module")
def diff_page_stats():
    return load_script("compare/diff_page_stats.py")


class TestAnalyseTrace:

    def test_gem5_run(self, analyse_trace, write_trace, tmp_path):
        a = write_trace("a.trc", [(10, 0x1000, READ), (30, 0x2000, READ), (50, 0x1000, READ)])
        b = write_trace("b.trc", [(20, 0x1000, WRITE), (40, 0x3000, WRITE)])
        output = tmp_path / "stats.csv"

        rc = analyse_trace.main(["--input", f"{a},{b}", "--output", str(output),
                                 "--inputsource", "gem5"])

        assert rc == 0
        with open(output, newline="") as f:
            rows = list(csv.reader(f))
        assert rows[-1] == ["40", "5", "3", "2", "3", "2", "2", "0"]

    def test_missing_input(self, analyse_trace, capsys):
        assert analyse_trace.main(["--output", "x.csv"]) == 2
        assert "No input files" in capsys.readouterr().out

    def test_bad_magic_reports_error(self, analyse_trace, tmp_path, capsys):
        bad = tmp_path / "bad.trc"
        bad.write_bytes(b"qemu")
        rc = analyse_trace.main(["--input", str(bad), "--output", str(tmp_path / "o.csv")])
        assert rc == 1
        assert "UnrecognizedFormat" in capsys.readouterr().out

    def test_config_file(self, analyse_trace, write_trace, tmp_path):
        config = tmp_path / "run.json"
        config.write_text('{"page_shift": 9, "flush_interval": 1}')
        trace = write_trace("a.trc", [(1, 0x200, READ), (2, 0x400, READ)])
        output = tmp_path / "stats.csv"

        rc = analyse_trace.main(["--config", str(config), "--input", trace, "--output", str(output)])

        assert rc == 0
        with open(output, newline="") as f:
            rows = list(csv.reader(f))
        # two interval rows plus the final row
        assert len(rows) == 5
        assert rows[-1][4] == "2"


class TestGem5ToQemu:

    def test_conversion(self, gem5_to_qemu, write_trace, tmp_path):
        misses = write_trace("misses.trc", [(1, 0x9000, READ), (2, 0x9000, WRITE)])
        fetch = write_trace("fetch.trc", [(3, 0x1000, READ), (5, 0x1000, READ)])
        data = write_trace("data.trc", [(4, 0x2000, WRITE), (6, 0x2000, WRITE)])
        out = tmp_path / "replay.bin"
        miss_csv = tmp_path / "misses.csv"

        rc = gem5_to_qemu.main(["--input", f"{misses},{fetch},{data}", "--out", str(out),
                                "--misses", str(miss_csv)])

        assert rc == 0
        assert out.stat().st_size % 18 == 0
        assert out.stat().st_size > 0
        assert miss_csv.read_text().startswith("million_events,misses")


class TestDiffPageStats:

    def test_identical_runs_have_zero_diff(self, diff_page_stats, tmp_path):
        stats = tmp_path / "a.csv"
        stats.write_text(
            "timestamp,total_accesses,total_reads,total_writes,total_pages_accessed,"
            "total_pages_written,total_pages_read,total_pages_fetched\n"
            "0,0,0,0,0,0,0,0\n"
            "100,10,6,4,3,2,2,0\n"
            "200,20,12,8,5,3,4,0\n"
        )
        out_dir = tmp_path / "diff"
        rc = diff_page_stats.main(["--current", str(stats), "--baseline", str(stats),
                                   "--out-dir", str(out_dir)])
        assert rc == 0
        df = pd.read_csv(out_dir / "page_stats_diff.csv")
        assert list(df["column"]) == diff_page_stats.COLUMNS
        assert (df["mean"] == 0).all()

    def test_diff_values(self, diff_page_stats):
        current = pd.DataFrame({c: [10, 20] for c in diff_page_stats.COLUMNS})
        baseline = pd.DataFrame({c: [8, 20, 30] for c in diff_page_stats.COLUMNS})
        diffs = diff_page_stats.diff_snapshots(current, baseline)
        assert list(diffs["total_reads"]) == [2, 0]
