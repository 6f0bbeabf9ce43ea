"""
Session logger for mbbrowse.
Single place to control all output: rich console + optional log file.
"""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console

from mbbrowse.__version__ import __version__

MAX_LOGGED_PAYLOAD_CHARS = 2000


class BrowserLogger:
    """Minimal logger: print to screen + file, always flush"""

    def __init__(
        self,
        log_file: Optional[Path] = None,
        debug: bool = False,
        console: Optional[Console] = None,
    ):
        self.log_file = log_file
        self._file_handle = None
        self._start_time = datetime.now()
        self.debug_mode = debug
        self._console = console or Console()

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_file, 'a', buffering=1, encoding='utf-8')

        self._write_file(f"({self._start_time.strftime('%H:%M:%S')}  Started mbbrowse {__version__})")

    def log(self, msg: str, prefix: str = ""):
        """Log to screen and file"""
        output = f"{prefix}{msg}" if prefix else msg
        self._console.print(output, markup=False, highlight=False)
        self._write_file(output)

    def _write_file(self, line: str) -> None:
        if self._file_handle:
            self._file_handle.write(line + "\n")
            self._file_handle.flush()

    def warning(self, msg: str):
        self.log(msg, "[WARNING] ")

    def error(self, msg: str):
        self.log(msg, "[ERROR] ")

    def debug(self, msg: str):
        """Debug message (only shown in debug mode)"""
        if self.debug_mode:
            self.log(msg, f"[{self._timestamp()}] [DEBUG] ")

    def api_request(self, method: str, url: str, params: Optional[dict] = None):
        """Log API request (debug mode only)"""
        if not self.debug_mode:
            return
        timestamp = self._timestamp()
        self.log(f"API Request: {method} {url}", f"[{timestamp}] ")
        if params:
            self.log(f"  Params: {json.dumps(params, sort_keys=True)}", f"[{timestamp}] ")

    def api_response(self, status: int, elapsed_ms: float, summary: object = None):
        """Log API response (debug mode only)"""
        if not self.debug_mode:
            return
        timestamp = self._timestamp()
        self.log(f"API Response ({elapsed_ms:.0f}ms): Status {status}", f"[{timestamp}] ")
        if summary is None:
            return
        if isinstance(summary, (dict, list)):
            text = json.dumps(summary, indent=2)
        else:
            text = str(summary)
        if len(text) > MAX_LOGGED_PAYLOAD_CHARS:
            text = text[:MAX_LOGGED_PAYLOAD_CHARS] + "\n  ... (truncated)"
        self.log(f"  Data: {text}", f"[{timestamp}] ")

    def api_retry(self, service: str, attempt: int, max_attempts: int, delay: int):
        self.log(f"{service} request failed. Retrying in {delay}s... (attempt {attempt}/{max_attempts})", "[WARNING] ")

    def api_failed(self, service: str, max_attempts: int):
        self.log(f"{service} not responding after {max_attempts} attempts. Giving up.", "[ERROR] ")

    @staticmethod
    def _timestamp() -> str:
        return datetime.now().strftime('%H:%M:%S.%f')[:-3]

    def close(self):
        """Close file handle with goodbye message"""
        if self._file_handle:
            end_time = datetime.now()
            elapsed = end_time - self._start_time
            self._write_file(
                f"({end_time.strftime('%H:%M:%S')}  Ended session, elapsed {elapsed.total_seconds():.1f}s)"
            )
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


_logger: Optional[BrowserLogger] = None

def set_logger(logger: BrowserLogger):
    """Set global logger instance"""
    global _logger
    _logger = logger

def get_logger() -> BrowserLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        # Fallback: screen-only logger
        _logger = BrowserLogger()
    return _logger

# Convenience functions
def error(msg: str):
    get_logger().error(msg)
