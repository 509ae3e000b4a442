# smartped/config.py
import logging

from .manager import (DEFAULT_CUTOFF, DEFAULT_STAGES, DEFAULT_THRESHOLD,
                      StepDetectionManager)
from .prefs import DEFAULT_VOLUME, load_state, load_volume, manager_kwargs

DEFAULT_PREFS = "smartped_prefs.json"
DEFAULT_LOG_DIR = "."
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def add_pedometer_args(ap):
    """Register the detector / persistence options shared by every host."""
    ap.add_argument("--threshold", type=int, default=None,
                    help=f"Step trigger, percent of dynamic threshold (default {DEFAULT_THRESHOLD})")
    ap.add_argument("--low-pass", dest="low_pass", action="store_true", default=None,
                    help="Feed the low-pass output to the crossing detector")
    ap.add_argument("--no-low-pass", dest="low_pass", action="store_false",
                    help="Use the raw scalar for crossing detection")
    ap.add_argument("--cutoff", type=float, default=DEFAULT_CUTOFF,
                    help="Initial normalized low-pass cutoff (corner / sample rate)")
    ap.add_argument("--stages", type=int, default=DEFAULT_STAGES, help="Low-pass cascade stages")
    ap.add_argument("--prefs", default=DEFAULT_PREFS, help="Saved-state JSON file")
    ap.add_argument("--no-prefs", action="store_true", help="Ignore and do not write saved state")
    ap.add_argument("--log-dir", default=DEFAULT_LOG_DIR, help="Directory for data logs")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def setup_logging(verbose=False):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def build_manager(args):
    """Manager from restored prefs, overridden by any explicit flags."""
    kwargs = {}
    if not args.no_prefs:
        saved = load_state(args.prefs)
        if saved is not None:
            kwargs = manager_kwargs(saved)
    if args.threshold is not None:
        kwargs["threshold"] = args.threshold
    if args.low_pass is not None:
        kwargs["low_pass"] = args.low_pass
    return StepDetectionManager(cutoff=args.cutoff, stages=args.stages, **kwargs)


def resolve_volume(args):
    """Explicit --volume if the host has one, else the saved volume unless --no-prefs."""
    volume = getattr(args, "volume", None)
    if volume is not None:
        return max(0, min(10, int(volume)))
    if args.no_prefs:
        return DEFAULT_VOLUME
    return load_volume(load_state(args.prefs))


__all__ = ["add_pedometer_args", "build_manager", "resolve_volume", "setup_logging", "DEFAULT_PREFS"]
