#!/usr/bin/env python3
import argparse
import json
from pathlib import Path
import pandas as pd
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

PAGE_COLUMNS = [
    "total_pages_accessed",
    "total_pages_read",
    "total_pages_written",
    "total_pages_fetched",
]
ACCESS_COLUMNS = ["total_accesses", "total_reads", "total_writes"]


def load_stats(path):
    df = pd.read_csv(path, skipinitialspace=True)
    df = df.apply(pd.to_numeric, errors="coerce").dropna()
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


def summarize(df):
    if df.empty:
        return {}
    last = df.iloc[-1]
    total = int(last["total_accesses"])
    pages = int(last["total_pages_accessed"])
    return {
        "timestamp": int(last["timestamp"]),
        "total_accesses": total,
        "total_reads": int(last["total_reads"]),
        "total_writes": int(last["total_writes"]),
        "total_fetches": total - int(last["total_reads"]) - int(last["total_writes"]),
        "pages_accessed": pages,
        "accesses_per_page": float(total / pages) if pages else 0.0,
    }


def plot_page_stats(df, output_path):
    sns.set(style="whitegrid", context="notebook", palette="flare")
    colors = sns.color_palette("flare", n_colors=len(PAGE_COLUMNS))

    fig, (ax1, ax2) = plt.subplots(
        2, 1, sharex=True,
        gridspec_kw={"height_ratios": [1, 1]},
        figsize=(10, 8)
    )

    for col, color in zip(ACCESS_COLUMNS, colors):
        ax1.plot(df["timestamp"], df[col], marker="o", linewidth=2, color=color,
                 label=col.replace("total_", ""))
    ax1.set_ylabel("Accesses", fontsize=12)
    ax1.set_title("Memory Accesses and Pages Touched over Time", fontsize=14, fontweight='bold')
    ax1.legend()
    ax1.grid(True, linestyle="--", linewidth=0.5)

    for col, color in zip(PAGE_COLUMNS, colors):
        ax2.plot(df["timestamp"], df[col], marker="s", linewidth=2, color=color,
                 label=col.replace("total_pages_", ""))
    ax2.set_xlabel("Tick (relative to start)", fontsize=12)
    ax2.set_ylabel("Distinct Pages", fontsize=12)
    ax2.legend()
    ax2.grid(True, linestyle="--", linewidth=0.5)

    plt.tight_layout()
    plt.savefig(output_path, dpi=300)
    plt.close(fig)
    print(f"✅ Saved page stats plot to {output_path}")


def plot_heatmap(heatmap_csv, output_path, bins):
    df = pd.read_csv(heatmap_csv, skipinitialspace=True)
    if df.empty:
        print(f"⚠️  Heatmap {heatmap_csv} is empty, skipping")
        return

    sns.set(style="whitegrid", context="notebook", palette="flare")
    counts, edges = np.histogram(df["page_address"], bins=bins, weights=df["accesses"])

    plt.figure(figsize=(10, 4))
    plt.bar(edges[:-1], counts, width=np.diff(edges), align="edge",
            color=sns.color_palette("flare", n_colors=1)[0], alpha=0.8)
    plt.yscale("log")
    plt.xlabel("Physical Address", fontsize=12)
    plt.ylabel("Accesses", fontsize=12)
    plt.title("Accesses per Address Region", fontsize=14, fontweight='bold')
    plt.tight_layout()
    plt.savefig(output_path, dpi=300)
    plt.close()
    print(f"✅ Saved heatmap plot to {output_path}")


def main(argv=None):
    p = argparse.ArgumentParser(description="Plot per-page statistics produced by analyse_trace.py")
    p.add_argument("stats_csv", help="Statistics CSV (timestamp,total_accesses,...)")
    p.add_argument("--heatmap", help="Heatmap CSV written with --heatmap", default=None)
    p.add_argument("--bins", type=int, default=256, help="Address bins for the heatmap plot")
    p.add_argument("--prefix", default="memtrace", help="Filename prefix for the plots")
    p.add_argument("--outdir", default=None, help="Output directory (default: next to the CSV)")
    args = p.parse_args(argv)

    stats_csv = Path(args.stats_csv)
    if not stats_csv.exists():
        raise SystemExit(f"❌ Statistics CSV not found: {stats_csv}")
    out_dir = Path(args.outdir) if args.outdir else stats_csv.parent
    out_dir.mkdir(parents=True, exist_ok=True)

    df = load_stats(stats_csv)
    plot_page_stats(df, out_dir / f"{args.prefix}_page_stats.pdf")

    stats = summarize(df)
    stats_path = out_dir / f"{args.prefix}_page_stats.json"
    with open(stats_path, 'w') as f:
        json.dump(stats, f, indent=2)
    print("Stats", stats)

    if args.heatmap:
        plot_heatmap(args.heatmap, out_dir / f"{args.prefix}_heatmap.pdf", args.bins)


if __name__ == "__main__":
    main()
