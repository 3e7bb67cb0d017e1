#!/usr/bin/env python3
import argparse
import os
import pandas as pd
import numpy as np

COLUMNS = [
    "total_accesses",
    "total_reads",
    "total_writes",
    "total_pages_accessed",
    "total_pages_written",
    "total_pages_read",
    "total_pages_fetched",
]


def load_snapshots(path):
    """Load a statistics CSV, dropping the synthetic all-zero first row."""
    df = pd.read_csv(path, skipinitialspace=True)
    df = df.apply(pd.to_numeric, errors="coerce").dropna()
    return df[df["total_accesses"] > 0].reset_index(drop=True)


def diff_snapshots(current, baseline):
    """Per-column differences between snapshots, aligned by snapshot index."""
    n = min(len(current), len(baseline))
    return {col: current[col].to_numpy()[:n] - baseline[col].to_numpy()[:n] for col in COLUMNS}


def summarize_and_write(diffs, outpath):
    """Compute mean, variance, and std dev of diffs per column, and write to CSV."""
    rows = []
    for col, values in diffs.items():
        if len(values) == 0:
            mean = var = std = np.nan
        else:
            mean = np.mean(values)
            var = np.var(values, ddof=0)
            std = np.std(values, ddof=0)
        rows.append({"column": col, "mean": mean, "variance": var, "stddev": std})
    df = pd.DataFrame(rows, columns=["column", "mean", "variance", "stddev"])
    df.to_csv(outpath, index=False)
    return df


def main(argv=None):
    p = argparse.ArgumentParser(
        description="Compare page statistics of two runs (e.g. gem5 vs qemu)"
    )
    p.add_argument('--current', required=True, help="Statistics CSV of the run under test")
    p.add_argument('--baseline', required=True, help="Statistics CSV to compare against")
    p.add_argument('--out-dir', default=None,
                   help="Where to write page_stats_diff.csv (default=directory of --current)")
    args = p.parse_args(argv)

    for path, desc in [(args.current, "current"), (args.baseline, "baseline")]:
        if not os.path.exists(path):
            print(f"❌ {desc} statistics not found at {path}")
            return 1

    out_dir = args.out_dir or os.path.dirname(os.path.abspath(args.current))
    os.makedirs(out_dir, exist_ok=True)

    current = load_snapshots(args.current)
    baseline = load_snapshots(args.baseline)
    if len(current) != len(baseline):
        print(f"⚠️  Snapshot counts differ ({len(current)} vs {len(baseline)}), comparing the first "
              f"{min(len(current), len(baseline))}")

    out_path = os.path.join(out_dir, 'page_stats_diff.csv')
    summarize_and_write(diff_snapshots(current, baseline), out_path)
    print(f"→ Wrote page_stats_diff.csv to {out_dir}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
