"""
main.py — HR portal desktop entry point
"""

import os
import socket
import sys
import time
import threading
import logging
import traceback
import webbrowser

# ── Package path (must come first) ───────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, LOG_FILE, DEFAULT_HOST, DEFAULT_PORT

# ── Logging ──────────────────────────────────────────────────────────────────
class DummyStream:
    def write(self, data): pass
    def flush(self): pass
    def isatty(self): return False
    def close(self): pass

if sys.stdout is None: sys.stdout = DummyStream()
if sys.stderr is None: sys.stderr = DummyStream()

try:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
except PermissionError:
    # Log file locked: console only
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

# ── Server and network helpers ───────────────────────────────────────────────

def _pick_port() -> int:
    """DEFAULT_PORT when it is free, otherwise any free port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((DEFAULT_HOST, DEFAULT_PORT))
        except OSError:
            s.bind((DEFAULT_HOST, 0))
        return s.getsockname()[1]

def _wait_for_server(port: int, timeout: float = 15.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((DEFAULT_HOST, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(0.1)
    return False

def _start_server(port: int) -> None:
    try:
        import uvicorn
        from api.app import create_app
        logger.info(f"Starting uvicorn on port {port}")
        app = create_app()
        uvicorn.run(app, host=DEFAULT_HOST, port=port, log_level="warning")
    except Exception:
        logger.error(f"Server error:\n{traceback.format_exc()}")

# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("=== HR Portal Started ===")
    os.chdir(BASE_DIR)

    port = _pick_port()
    server_thread = threading.Thread(target=_start_server, args=(port,), daemon=True)
    server_thread.start()

    if _wait_for_server(port):
        url = f"http://{DEFAULT_HOST}:{port}"
        logger.info(f"Server ready at {url}")
        webbrowser.open(url)

        # Keep the main thread alive
        try:
            while True:
                time.sleep(10)
        except KeyboardInterrupt:
            logger.info("Stopped by user.")
    else:
        logger.error("Server did not start in time. Check for another instance holding the port.")
        sys.exit(1)
