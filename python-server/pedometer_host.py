#!/usr/bin/env python3
"""
Smart pedometer live viewer (pyqtgraph, 10s rolling window)
- Plots scalar / filtered acceleration, peak strength and dynamic threshold
- Prints STEP,<t_s>,<steps> for each detected step
- Input: serial (--port) or file (--file)
- Expected format: x,y,z,timestamp_ns

Install:
  pip install pyqtgraph PyQt5 pyserial

Examples:
  python pedometer_host.py --port /dev/ttyACM0 --baud 115200
  python pedometer_host.py --file walk.csv --threshold 60 --low-pass --beep

Keys: R reset, L toggle low-pass, +/- trigger threshold, S start/stop data log.
"""
import sys
import argparse

from PyQt5 import QtWidgets

from smartped.config import add_pedometer_args, build_manager, resolve_volume, setup_logging
from smartped.plotter import StepWindow
from smartped.prefs import DEFAULT_VOLUME
from smartped.reader import parse_line


def parse_args(argv=None):
    ap = argparse.ArgumentParser()
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--port", help="Serial port (e.g., /dev/ttyACM0 or COM5)")
    src.add_argument("--file", help="CSV file with x,y,z,timestamp_ns lines")
    ap.add_argument("--baud", type=int, default=115200, help="Serial baudrate")
    ap.add_argument("--window", type=float, default=10.0, help="Rolling window (seconds)")
    ap.add_argument("--ui-hz", type=float, default=60.0, help="UI refresh rate")
    ap.add_argument("--queue-max", type=int, default=10000, help="Reader→GUI queue size")
    ap.add_argument("--beep", action="store_true", help="Ring the terminal bell on each step")
    ap.add_argument("--volume", type=int, default=None,
                    help=f"Feedback volume saved with prefs, 0-10 (default: saved value or {DEFAULT_VOLUME})")
    add_pedometer_args(ap)
    return ap.parse_args(argv)


def main():
    args = parse_args()
    setup_logging(args.verbose)
    manager = build_manager(args)
    args.volume = resolve_volume(args)
    app = QtWidgets.QApplication([])
    w = StepWindow(args, manager, parse_line)
    w.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
