from __future__ import annotations

import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from smartped.datalog import LOG_COLUMNS


def load_steplog_dataframe(log_path: Path) -> pd.DataFrame:
    """Load a tab-separated data log; rows end with a trailing tab."""
    try:
        df = pd.read_csv(log_path, sep="\t", header=None)
    except pd.errors.EmptyDataError:
        raise ValueError(f"No records found in {log_path}") from None
    df = df.iloc[:, :len(LOG_COLUMNS)]
    df.columns = LOG_COLUMNS
    df["timestamp_ns"] = df["timestamp_ns"].astype("int64")
    df["t_rel"] = (df["timestamp_ns"] - df["timestamp_ns"].iloc[0]) / 1e9
    return df


def step_mask(df: pd.DataFrame, threshold_pct: int) -> np.ndarray:
    """Rows where the logged peak cleared the trigger fraction of the logged threshold."""
    peak = df["peak"].to_numpy()
    trigger = (threshold_pct / 100.0) * df["threshold"].to_numpy()
    return (peak != 0.0) & (peak > trigger)


def plot_steplog(df: pd.DataFrame, threshold_pct: int = 70, title: str = "") -> None:
    steps = step_mask(df, threshold_pct)
    t_steps = df["t_rel"].to_numpy()[steps]

    fig, axes = plt.subplots(2, 1, sharex=True, figsize=(12, 7))

    axes[0].plot(df["t_rel"], df["scalar"], color="C0", linewidth=1, label="scalar")
    axes[0].plot(df["t_rel"], df["filtered"], color="C1", linewidth=1.5, label="filtered")
    axes[0].axhline(0.0, color="k", linestyle="--", alpha=0.3)
    axes[0].set_ylabel("Acceleration (m/s², 1 g removed)")
    axes[0].set_title(f"Step log{title}")
    axes[0].legend(loc="upper right")
    axes[0].grid(True, alpha=0.3)

    nz = df["peak"] != 0.0
    axes[1].stem(df.loc[nz, "t_rel"], df.loc[nz, "peak"], linefmt="C3-", markerfmt="C3o",
                 basefmt=" ", label="peak strength")
    axes[1].plot(df["t_rel"], df["threshold"], "--", color="orange", linewidth=2, label="dynamic threshold")
    axes[1].plot(df["t_rel"], df["threshold"] * threshold_pct / 100.0, ":", color="gray",
                 label=f"trigger ({threshold_pct}%)")
    axes[1].set_ylabel("Gradient (m/s³)")
    axes[1].set_xlabel("Time (s)")
    axes[1].legend(loc="upper right")
    axes[1].grid(True, alpha=0.3)

    for t in t_steps:
        for ax in axes:
            ax.axvline(t, color="green", alpha=0.4)

    fig.tight_layout()
    plt.show()


def main() -> None:
    parser = argparse.ArgumentParser(description="Plot a smart pedometer data log")
    parser.add_argument("--file", type=Path, required=True, help="Path to data log (data_YYYY_M_D_H_M)")
    parser.add_argument("--threshold", type=int, default=70,
                        help="Trigger threshold percent used during recording (default: 70)")
    args = parser.parse_args()

    df = load_steplog_dataframe(args.file)
    n_steps = int(step_mask(df, args.threshold).sum())
    print(f"Loaded {len(df)} records spanning {df['t_rel'].iloc[-1]:.2f} s")
    print(f"Steps at {args.threshold}% trigger: {n_steps}")
    plot_steplog(df, threshold_pct=args.threshold, title=f" ({args.file.name})")


if __name__ == "__main__":
    main()
