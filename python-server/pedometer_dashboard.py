#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Smart Pedometer Dashboard (TCP sample bridge + mobile web UI)

- A sensor client (phone streaming app, microcontroller) connects over TCP
  and streams acceleration samples.
- Serves a tiny web app you can open from your phone to watch steps, cadence
  and the dynamic threshold, tweak the trigger and low-pass, reset, and
  start/stop the data log.

Run:
  python pedometer_dashboard.py --bind 0.0.0.0 --http 8000 --tcp-port 12345

Then on your phone (same Wi-Fi):
  http://<your-laptop-ip>:8000/

Protocol from the sensor client (one per line):
    x,y,z,timestamp_ns          -> acceleration sample (m/s^2, ns)
"""
import argparse
import logging
import math
import socket
import threading
import time
from typing import Optional, Dict, Any

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
import uvicorn

from smartped.config import add_pedometer_args, build_manager, resolve_volume, setup_logging
from smartped.manager import StepDetectionManager
from smartped.prefs import DEFAULT_VOLUME, save_state
from smartped.reader import parse_line

logger = logging.getLogger("pedometer_dashboard")


def _safe_float(x: float) -> Optional[float]:
    # NaN / inf are not valid JSON
    return None if math.isnan(x) or math.isinf(x) else x


class SharedState:
    """Lock-protected pedometer shared by the TCP bridge and the HTTP handlers."""

    def __init__(self, manager: StepDetectionManager, log_dir: str = ".", volume: int = DEFAULT_VOLUME) -> None:
        self.lock = threading.Lock()
        self.pm = manager
        self.volume = volume
        self.log_dir = log_dir
        self.log_name: Optional[str] = None
        self.connected = False
        self.last_seen = 0.0
        self.samples = 0
        self.sample_rate = 0.0

    def feed(self, sample) -> bool:
        with self.lock:
            ready = self.pm.process_sample(sample)
            if ready:
                self.sample_rate = self.pm.sample_rate()
            self.samples += 1
            self.last_seen = time.time()
            return ready

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            snap = self.pm.snapshot()
            snap = {k: (_safe_float(v) if isinstance(v, float) else v) for k, v in snap.items()}
            snap.update({
                "connected": self.connected,
                "last_seen_s_ago": max(0.0, time.time() - self.last_seen) if self.last_seen else None,
                "samples": self.samples,
                "sample_rate": _safe_float(self.sample_rate),
                "log_file": self.log_name,
            })
            return snap

    def reset(self) -> None:
        with self.lock:
            self.pm.reset()

    def configure(self, threshold=None, low_pass=None) -> Dict[str, Any]:
        # JSON booleans only
        if low_pass is not None and not isinstance(low_pass, bool):
            raise TypeError(f"low_pass must be true or false, got {low_pass!r}")
        with self.lock:
            if threshold is not None:
                self.pm.threshold = int(threshold)
            if low_pass is not None:
                self.pm.low_pass = low_pass
            return {"threshold": self.pm.threshold, "low_pass": self.pm.low_pass}

    def start_log(self) -> str:
        with self.lock:
            self.log_name = self.pm.open_log(self.log_dir)
            return self.log_name

    def stop_log(self) -> None:
        with self.lock:
            self.pm.close_log()
            self.log_name = None


class TcpBridge(threading.Thread):
    MAX_LINE = 4096

    def __init__(self, host: str, port: int, state: SharedState, verbose: bool = True):
        super().__init__(daemon=True)
        self.host = host
        self.port = port
        self.state = state
        self.verbose = verbose
        self._stop_evt = threading.Event()
        self.rejected = 0

    # ---------- telemetry path ----------
    def _handle_text(self, txt: str) -> None:
        sample = parse_line(txt)
        if sample is None:
            self.rejected += 1
            if self.verbose and txt.strip():
                logger.info("ignored line: %s", txt.strip()[:80])
            return
        self.state.feed(sample)

    def _feed_bytes(self, buf: bytes, data: bytes) -> bytes:
        """Handle every complete line in buf + data and return the unterminated rest."""
        buf += data
        while b"\n" in buf:
            line, buf = buf.split(b"\n", 1)
            self._handle_text(line.decode("utf-8", "ignore"))
        if len(buf) > self.MAX_LINE:
            logger.warning("dropping %d bytes without a newline", len(buf))
            self.rejected += 1
            buf = b""
        return buf

    # ---------- accept loop ----------
    def run(self) -> None:
        logger.info("Waiting for sensor client on %s:%d ...", self.host, self.port)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as srv:
            srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                srv.bind((self.host, self.port))
                srv.listen(1)
            except OSError as e:
                logger.error("cannot listen on %s:%d: %s", self.host, self.port, e)
                return
            srv.settimeout(1.0)
            while not self._stop_evt.is_set():
                try:
                    conn, addr = srv.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    logger.error("accept failed: %s", e)
                    continue
                with self.state.lock:
                    self.state.connected = True
                logger.info("Sensor client connected from %s", addr)

                try:
                    buf = b""
                    conn.settimeout(1.0)
                    while not self._stop_evt.is_set():
                        try:
                            data = conn.recv(4096)
                        except socket.timeout:
                            continue
                        if not data:
                            break
                        buf = self._feed_bytes(buf, data)
                except OSError as e:
                    logger.error("connection error: %s", e)
                finally:
                    conn.close()
                    with self.state.lock:
                        self.state.connected = False
                    logger.info("Sensor client disconnected")

    def stop(self) -> None:
        self._stop_evt.set()


# ----------------------- HTTP app -----------------------
def make_app(state: SharedState) -> FastAPI:
    app = FastAPI()

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return HTML_PAGE

    @app.get("/api/state")
    async def api_state() -> JSONResponse:
        return JSONResponse(state.snapshot())

    @app.post("/api/reset")
    async def api_reset() -> JSONResponse:
        state.reset()
        return JSONResponse({"ok": True})

    @app.post("/api/config")
    async def api_config(request: Request) -> JSONResponse:
        try:
            params = await request.json()
        except ValueError:
            params = None
        if not isinstance(params, dict):
            return JSONResponse({"ok": False, "error": "expected a JSON object"}, status_code=400)
        try:
            threshold = params.get("threshold")
            if threshold is not None:
                threshold = int(threshold)
            applied = state.configure(threshold=threshold, low_pass=params.get("low_pass"))
        except (TypeError, ValueError) as exc:
            return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)
        return JSONResponse({"ok": True, **applied})

    @app.post("/api/log")
    async def api_log(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            payload = {}
        action = (payload.get("action") or "").lower() if isinstance(payload, dict) else ""
        if action == "start":
            try:
                name = state.start_log()
            except OSError as exc:
                logger.error("Cannot open data log: %s", exc)
                return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)
            return JSONResponse({"ok": True, "log_file": name})
        if action == "stop":
            state.stop_log()
            return JSONResponse({"ok": True, "log_file": None})
        return JSONResponse({"ok": False, "error": f"unknown action {action!r}"}, status_code=400)

    return app


HTML_PAGE = r"""
<!doctype html>
<html lang="en">
<meta charset="utf-8"/>
<meta name="viewport" content="width=device-width, initial-scale=1"/>
<title>Smart Pedometer</title>
<style>
  :root { --bg:#0d0f12; --fg:#e7e9ee; --muted:#a7acb8; --card:#141820; --accent:#5ee1a1; --warn:#f9d36f; --bad:#ff7a90; }
  html, body { background:var(--bg); color:var(--fg); font-family: system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial; margin:0; }
  .wrap { max-width: 750px; margin: 0 auto; padding: 16px; }
  .row { display:flex; gap:12px; flex-wrap:wrap; }
  .card { background:var(--card); border-radius:18px; padding:16px; box-shadow: 0 10px 30px rgba(0,0,0,0.25); flex:1; min-width:260px; }
  h1 { font-size: 22px; margin: 0 0 12px; letter-spacing: 0.2px;}
  h2 { font-size: 14px; margin: 0 0 8px; color: var(--muted); font-weight:600; text-transform: uppercase; letter-spacing:0.08em;}
  .metric { font-size: 40px; font-weight:700; letter-spacing:0.02em; }
  .muted { color: var(--muted); font-size: 13px; }
  .badge { display:inline-block; padding:2px 8px; border-radius:999px; font-size:12px; font-weight:600; }
  .ok { background: rgba(94,225,161,0.15); color: var(--accent); }
  .bad { background: rgba(255,122,144,0.15); color: var(--bad); }
  label { display:block; font-size:13px; color:var(--muted); margin-bottom:4px; }
  input[type=range] { width:100%; }
  button { padding:10px 14px; border-radius:12px; border:0; background:#1f2835; color:var(--fg); font-weight:600; }
  button.primary { background: var(--accent); color:#0b1118; }
  .grid { display:grid; grid-template-columns: repeat(2, minmax(0,1fr)); gap:12px; }
  canvas { width:100%; height:120px; display:block; background:#0b0e13; border-radius:12px; }
</style>
<div class="wrap">
  <h1>Smart Pedometer</h1>

  <div class="row">
    <div class="card">
      <h2>Sensor Link</h2>
      <div id="conn" class="badge bad">Disconnected</div>
      <div class="muted" id="age">Last update: —</div>
      <div class="muted" id="rate">Sample rate: —</div>
      <div style="margin-top:8px; display:flex; gap:8px; flex-wrap:wrap;">
        <button id="btnReset">Reset</button>
        <button class="primary" id="btnRecord">Record</button>
        <button id="btnStop">Stop</button>
      </div>
      <div class="muted" id="logfile">Data File not open</div>
    </div>
    <div class="card">
      <h2>Steps</h2>
      <div class="metric"><span id="steps">—</span></div>
      <div class="muted"><span id="cadence">—</span> steps/min · run time <span id="runtime">—</span> s</div>
    </div>
  </div>

  <div class="card" style="margin-top:12px">
    <h2>Peak vs Dynamic Threshold</h2>
    <div class="grid">
      <div><label>Last peak</label><div class="muted" id="peak">—</div></div>
      <div><label>Dynamic threshold</label><div class="muted" id="dyn">—</div></div>
      <div><label>Scalar (1 g removed)</label><div class="muted" id="scalar">—</div></div>
      <div><label>Offset</label><div class="muted" id="offset">—</div></div>
    </div>
    <canvas id="plot" style="margin-top:12px"></canvas>
  </div>

  <div class="card" style="margin-top:12px">
    <h2>Detection</h2>
    <label>Trigger Threshold = <span id="thrLabel">—</span>%</label>
    <input id="thr" type="range" min="0" max="100" step="1">
    <label style="display:flex; align-items:center; gap:6px; margin-top:12px;"><input type="checkbox" id="lp">Low pass filter</label>
    <label style="display:flex; align-items:center; gap:6px;"><input type="checkbox" id="beep" checked>Beep on step</label>
  </div>
</div>

<script>
const fmt = v => (v===null || v===undefined || Number.isNaN(v)) ? "—" : (+v).toFixed(2);
const hist = [];
const plot = document.getElementById('plot');
const ctx = plot.getContext('2d');
let lastSteps = null;
let audio = null;

function beep() {
  if (!document.getElementById('beep').checked) return;
  audio = audio || new (window.AudioContext || window.webkitAudioContext)();
  const osc = audio.createOscillator();
  osc.frequency.value = 1760;
  osc.connect(audio.destination);
  osc.start();
  osc.stop(audio.currentTime + 0.05);
}

function draw() {
  const w = plot.clientWidth, h = plot.clientHeight;
  if (plot.width !== w) plot.width = w;
  if (plot.height !== h) plot.height = h;
  ctx.clearRect(0,0,w,h);
  const N = hist.length;
  if (N < 2) return;
  let max = Math.max(1e-6, ...hist.map(p => Math.max(p[0], p[1])));
  [[0,'#ff7a90'],[1,'#f9d36f']].forEach(([k,color]) => {
    ctx.strokeStyle = color; ctx.lineWidth = 2; ctx.beginPath();
    for (let i=0;i<N;i++){
      const x = (i/(N-1))*w, y = h - (hist[i][k]/max)*h;
      if (i===0) ctx.moveTo(x,y); else ctx.lineTo(x,y);
    }
    ctx.stroke();
  });
}

async function poll() {
  try {
    const r = await fetch('/api/state');
    const s = await r.json();
    document.getElementById('conn').textContent = s.connected ? 'Connected' : 'Disconnected';
    document.getElementById('conn').className = 'badge ' + (s.connected ? 'ok':'bad');
    document.getElementById('age').textContent = 'Last update: ' + (s.last_seen_s_ago==null? '—' : s.last_seen_s_ago.toFixed(1)+'s ago');
    document.getElementById('rate').textContent = 'Sample rate: ' + fmt(s.sample_rate) + ' Hz';
    document.getElementById('steps').textContent = s.steps;
    document.getElementById('cadence').textContent = (+s.step_rate).toFixed(1);
    document.getElementById('runtime').textContent = Math.floor(s.run_time_s);
    document.getElementById('peak').textContent = fmt(s.last_peak);
    document.getElementById('dyn').textContent = fmt(s.dynamic_threshold);
    document.getElementById('scalar').textContent = fmt(s.scalar);
    document.getElementById('offset').textContent = fmt(s.offset);
    document.getElementById('logfile').textContent = s.log_file ? (s.log_file + ' file opened') : 'Data File not open';
    if (document.activeElement.id !== 'thr') {
      document.getElementById('thr').value = s.threshold_pct;
      document.getElementById('thrLabel').textContent = s.threshold_pct;
    }
    document.getElementById('lp').checked = s.low_pass;
    if (lastSteps !== null && s.steps > lastSteps) beep();
    lastSteps = s.steps;
    hist.push([+s.last_peak || 0, +s.dynamic_threshold || 0]);
    if (hist.length>200) hist.shift();
    draw();
  } catch(e){/* ignore */}
  setTimeout(poll, 200);
}

async function post(url, body){
  await fetch(url, {method:'POST', headers:{'Content-Type':'application/json'}, body: JSON.stringify(body || {})});
}

document.getElementById('btnReset').onclick = ()=> post('/api/reset');
document.getElementById('btnRecord').onclick = ()=> post('/api/log', {action:'start'});
document.getElementById('btnStop').onclick = ()=> post('/api/log', {action:'stop'});
document.getElementById('thr').oninput = (e)=> { document.getElementById('thrLabel').textContent = e.target.value; };
document.getElementById('thr').onchange = (e)=> post('/api/config', {threshold: +e.target.value});
document.getElementById('lp').onchange = (e)=> post('/api/config', {low_pass: e.target.checked});

poll();
</script>
</html>
"""


def save_prefs(path, state: SharedState) -> None:
    with state.lock:
        try:
            save_state(path, state.pm, volume=state.volume)
        except OSError as exc:
            logger.error("Failed to save prefs: %s", exc)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Smart Pedometer Dashboard (TCP + Web UI)")
    p.add_argument("--bind", default="0.0.0.0", help="HTTP bind host (default 0.0.0.0)")
    p.add_argument("--http", type=int, default=8000, help="HTTP port (default 8000)")
    p.add_argument("--tcp-host", default="0.0.0.0", help="Sensor TCP bind host (default 0.0.0.0)")
    p.add_argument("--tcp-port", type=int, default=12345, help="TCP port for the sensor client (default 12345)")
    add_pedometer_args(p)
    return p.parse_args(argv)


def main():
    args = parse_args()
    setup_logging(args.verbose)
    state = SharedState(build_manager(args), log_dir=args.log_dir, volume=resolve_volume(args))
    bridge = TcpBridge(args.tcp_host, args.tcp_port, state, verbose=args.verbose)
    bridge.start()

    app = make_app(state)
    try:
        uvicorn.run(app, host=args.bind, port=args.http, log_level="info")
    finally:
        bridge.stop()
        state.stop_log()
        if not args.no_prefs:
            save_prefs(args.prefs, state)


if __name__ == "__main__":
    main()
