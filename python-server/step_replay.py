#!/usr/bin/env python3
"""
Replay a recorded x,y,z,timestamp_ns CSV through the step detector and
print step events plus a diagnostic summary.

  python step_replay.py --file walk.csv --threshold 70 --low-pass
  python step_replay.py --file walk.csv --write-log --log-dir logs/
"""
import sys
import argparse
import logging

from smartped.config import add_pedometer_args, setup_logging
from smartped.manager import StepDetectionManager
from smartped.reader import load_samples

logger = logging.getLogger("step_replay")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Replay an acceleration recording through the pedometer")
    ap.add_argument("--file", required=True, help="CSV file with x,y,z,timestamp_ns lines")
    ap.add_argument("--write-log", action="store_true", help="Write a data log into --log-dir")
    ap.add_argument("--quiet", action="store_true", help="Only print the summary")
    add_pedometer_args(ap)
    return ap.parse_args(argv)


def replay(samples, manager, on_step=None):
    """
    Feed samples through the manager. Returns a summary dict.
    on_step(index, sample, steps) is called for every detected step.
    """
    updates = 0
    rates = []
    last_steps = manager.steps
    for i, sample in enumerate(samples):
        if manager.process_sample(sample):
            updates += 1
            sr = manager.sample_rate()
            if sr > 0:
                rates.append(sr)
        if manager.steps > last_steps and on_step is not None:
            on_step(i, sample, manager.steps)
        last_steps = manager.steps

    duration_s = 0.0
    if len(samples) > 1:
        duration_s = (samples[-1].timestamp_ns - samples[0].timestamp_ns) / 1e9
    return {
        "samples": len(samples),
        "duration_s": duration_s,
        "updates": updates,
        "mean_sample_rate": sum(rates) / len(rates) if rates else 0.0,
        "steps": manager.steps,
        "step_rate": manager.step_rate,
        "last_peak": manager.last_peak,
        "dynamic_threshold": manager.instant_threshold,
        "run_time_s": manager.run_time / 1e9,
    }


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        samples = load_samples(args.file)
    except OSError as exc:
        logger.error("Cannot read %s: %s", args.file, exc)
        return 1
    print(f"Loaded {len(samples)} samples from {args.file}")
    if not samples:
        print("ERROR: No data loaded!")
        return 1

    manager = StepDetectionManager(
        threshold=70 if args.threshold is None else args.threshold,
        low_pass=bool(args.low_pass),
        cutoff=args.cutoff,
        stages=args.stages,
    )
    if args.write_log:
        try:
            print(f"Data log: {manager.open_log(args.log_dir)}")
        except OSError as exc:
            logger.error("Cannot open data log in %s: %s", args.log_dir, exc)
            return 1

    t_first = samples[0].timestamp_ns

    def on_step(i, sample, steps):
        if not args.quiet:
            t_rel = (sample.timestamp_ns - t_first) / 1e9
            print(f"  STEP {steps} at {t_rel:.3f} s (sample {i+1}/{len(samples)}, "
                  f"peak={manager.last_peak:.3f}, threshold={manager.instant_threshold:.3f})")

    try:
        summary = replay(samples, manager, on_step=on_step)
    finally:
        manager.close_log()

    print("\nSummary:")
    print(f"  samples:           {summary['samples']}")
    print(f"  duration:          {summary['duration_s']:.3f} s")
    print(f"  mean sample rate:  {summary['mean_sample_rate']:.2f} Hz")
    print(f"  steps:             {summary['steps']}")
    print(f"  step rate:         {summary['step_rate']:.1f} steps/min")
    print(f"  last peak:         {summary['last_peak']:.3f}")
    print(f"  dynamic threshold: {summary['dynamic_threshold']:.3f}")
    if summary["steps"] == 0:
        print("\n⚠️  NO STEPS DETECTED! Try --threshold lower or --low-pass.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
