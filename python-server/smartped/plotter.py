import sys
import queue
import logging
import threading
from collections import deque

import numpy as np

import pyqtgraph as pg
from PyQt5 import QtWidgets, QtCore

from .reader import ReaderThread
from .prefs import save_state

logger = logging.getLogger(__name__)


class StepWindow(QtWidgets.QMainWindow):
	def __init__(self, args, manager, parse_fn, reader_cls=ReaderThread):
		super().__init__()
		if parse_fn is None:
			raise ValueError("parse_fn is required for StepWindow")
		self.setWindowTitle("Smart Pedometer Live (pyqtgraph)")
		self.resize(1100, 750)

		self.args = args
		self.win = args.window
		self.pm = manager

		# Data buffers (deques of (t, value))
		self.t0 = None
		self.t_last = 0.0
		self.buf = {
			"scalar": deque(), "filtered": deque(),
			"peak": deque(), "threshold": deque(), "trigger": deque(),
		}
		self.step_points = []  # [(t, peak), ...]
		self.last_steps = self.pm.steps
		self.sample_rate = 0.0

		# UI layout
		central = QtWidgets.QWidget(self)
		self.setCentralWidget(central)
		vbox = QtWidgets.QVBoxLayout(central)
		self.glw = pg.GraphicsLayoutWidget(show=True)
		vbox.addWidget(self.glw)

		self.plot_sig = self.glw.addPlot(title="Scalar acceleration (m/s², 1 g removed)")
		self.plot_sig.addLegend()
		self.plot_sig.showGrid(x=True, y=True, alpha=0.3)
		self.cur_scalar = self.plot_sig.plot([], [], pen=pg.mkPen((120,170,255), width=2), name="scalar")
		self.cur_filtered = self.plot_sig.plot([], [], pen=pg.mkPen((255,255,100), width=2), name="filtered")
		self.plot_sig.addItem(pg.InfiniteLine(pos=0.0, angle=0, movable=False,
		                                      pen=pg.mkPen((150,150,150), style=QtCore.Qt.DotLine)))

		self.glw.nextRow()
		self.plot_peak = self.glw.addPlot(title="Peak strength vs dynamic threshold, steps in green")
		self.plot_peak.addLegend()
		self.plot_peak.showGrid(x=True, y=True, alpha=0.3)
		self.cur_peak = self.plot_peak.plot([], [], pen=pg.mkPen((255,120,120), width=2), name="peak")
		self.cur_threshold = self.plot_peak.plot([], [], pen=pg.mkPen((255,150,0), width=2, style=QtCore.Qt.DashLine), name="threshold")
		self.cur_trigger = self.plot_peak.plot([], [], pen=pg.mkPen((200,200,200), width=1, style=QtCore.Qt.DotLine), name="trigger")
		self.step_scatter = pg.ScatterPlotItem(size=12, pen=pg.mkPen((0,200,0), width=2),
		                                       brush=pg.mkBrush((0,200,0,150)), symbol='t1', name="step")
		self.plot_peak.addItem(self.step_scatter)

		# Reader thread + timer to drain queue
		self.q = queue.Queue(maxsize=args.queue_max)
		self.stop_evt = threading.Event()
		self.reader = reader_cls(args.port, args.baud, args.file, self.q, self.stop_evt, parse_fn=parse_fn)
		self.reader.start()

		self.timer = QtCore.QTimer(self)
		self.timer.timeout.connect(self.on_timer)
		self.timer.start(int(1000 / max(1.0, args.ui_hz)))

		self.status = self.statusBar()
		self.log_name = None
		self.update_status()

	def closeEvent(self, ev):
		self.stop_evt.set()
		self.reader.join(timeout=1.0)
		self.pm.close_log()
		if not self.args.no_prefs:
			try:
				save_state(self.args.prefs, self.pm, volume=self.args.volume)
			except OSError as exc:
				logger.error("Failed to save prefs: %s", exc)
		ev.accept()

	# ------------------------ controls ------------------------
	def keyPressEvent(self, ev):
		key = ev.key()
		if key == QtCore.Qt.Key_R:
			self.pm.reset()
			self.last_steps = self.pm.steps
			self.step_points = []
		elif key == QtCore.Qt.Key_L:
			self.pm.low_pass = not self.pm.low_pass
		elif key in (QtCore.Qt.Key_Plus, QtCore.Qt.Key_Equal):
			self.pm.threshold = self.pm.threshold + 5
		elif key == QtCore.Qt.Key_Minus:
			self.pm.threshold = self.pm.threshold - 5
		elif key == QtCore.Qt.Key_S:
			self.toggle_log()
		else:
			super().keyPressEvent(ev)
			return
		self.update_status()

	def toggle_log(self):
		if self.log_name is not None:
			self.pm.close_log()
			self.log_name = None
			return
		try:
			self.log_name = self.pm.open_log(self.args.log_dir)
			print(f"[smartped] {self.log_name} file opened")
		except OSError as exc:
			logger.error("Failed to open data log: %s", exc)

	# ------------------------ data ------------------------
	def append(self, key, t, val):
		d = self.buf[key]
		d.append((t, val))
		t_cut = t - self.win
		while d and d[0][0] < t_cut:
			d.popleft()

	def series(self, key):
		d = self.buf[key]
		if not d:
			return np.empty(0), np.empty(0)
		arr = np.asarray(d, dtype=float)
		return arr[:, 0], arr[:, 1]

	def on_step(self, t_rel, t_s):
		peak = self.pm.last_peak
		self.step_points.append((t_rel, peak))
		print(f"STEP,{t_s:.3f},{self.pm.steps}")
		if self.args.beep:
			sys.stdout.write("\a")
		sys.stdout.flush()

	def on_timer(self):
		drained = 0
		update_ready = False
		while True:
			try:
				rec = self.q.get_nowait()
			except queue.Empty:
				break
			drained += 1
			t = rec.timestamp_ns * 1e-9
			if self.t0 is None:
				self.t0 = t
			trel = t - self.t0
			self.t_last = trel

			if self.pm.process_sample(rec):
				update_ready = True
			fr = self.pm.frame
			self.append("scalar", trel, fr.scalar)
			self.append("filtered", trel, fr.filtered)
			self.append("peak", trel, fr.peak)
			self.append("threshold", trel, fr.threshold)
			self.append("trigger", trel, fr.threshold * self.pm.threshold / 100.0)

			if self.pm.steps > self.last_steps:
				self.on_step(trel, t)
			self.last_steps = self.pm.steps

		if update_ready:
			self.sample_rate = self.pm.sample_rate()
			self.update_status()

		if drained:
			x0 = max(0.0, self.t_last - self.win)
			x1 = self.t_last if self.t_last > 0 else self.win

			for key, curve in (("scalar", self.cur_scalar), ("filtered", self.cur_filtered),
			                   ("peak", self.cur_peak), ("threshold", self.cur_threshold),
			                   ("trigger", self.cur_trigger)):
				ts, vs = self.series(key)
				curve.setData(ts, vs)
			self.plot_sig.setXRange(x0, x1, padding=0.0)
			self.plot_peak.setXRange(x0, x1, padding=0.0)

			# Trim old points
			self.step_points = [(t, y) for (t, y) in self.step_points if t >= x0]
			if self.step_points:
				sx, sy = zip(*self.step_points)
				self.step_scatter.setData(sx, sy)
			else:
				self.step_scatter.setData([], [])

	def update_status(self):
		pm = self.pm
		log_txt = self.log_name or "no data log"
		self.status.showMessage(
			f"Steps: {pm.steps}  |  Rate: {pm.step_rate:.1f} steps/min  |  "
			f"Sample rate: {self.sample_rate:.2f} Hz  |  Run time: {int(pm.run_time / 1e9)} s  |  "
			f"Peak: {pm.last_peak:.2f}  |  Trigger: {pm.threshold}%  |  "
			f"Low pass: {'on' if pm.low_pass else 'off'}  |  {log_txt}  "
			f"[R reset, L low-pass, +/- trigger, S log]"
		)


__all__ = ["StepWindow"]
