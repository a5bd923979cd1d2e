"""Gyroscope adapter for an IMU streaming ``gx,gy,gz`` lines over serial."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from models import RotationSample

try:
    import serial
except Exception:  # pragma: no cover
    serial = None  # type: ignore

logger = logging.getLogger(__name__)


def parse_rotation_line(line: bytes) -> Optional[RotationSample]:
    """Parse ``b"0.01,-0.62,0.00\\n"`` into a sample; None if malformed."""
    try:
        parts = line.decode("ascii").strip().split(",")
    except UnicodeDecodeError:
        return None
    if len(parts) != 3:
        return None
    try:
        x, y, z = (float(p) for p in parts)
    except ValueError:
        return None
    return RotationSample(x=x, y=y, z=z, timestamp_ms=int(time.time() * 1000))


class SerialGyroSensor:
    def __init__(self, port: str, baudrate: int = 115200, read_timeout_s: float = 0.01) -> None:
        self.port = port
        self.baudrate = baudrate
        self._read_timeout_s = read_timeout_s
        self._serial: Any = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.skipped_lines = 0

    @property
    def is_available(self) -> bool:
        with self._lock:
            return self._open()

    def start(self, interval_s: float, callback: Callable[[RotationSample], None]) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            if not self._open():
                raise RuntimeError(f"gyroscope on {self.port} is not available")
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._worker,
                args=(interval_s, callback),
                name="gyro",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)
        with self._lock:
            self._thread = None
            if self._serial is not None:
                self._serial.close()
                self._serial = None

    def _open(self) -> bool:
        if self._serial is not None:
            return True
        if serial is None:
            logger.warning("pyserial is not installed")
            return False
        try:
            self._serial = serial.Serial(self.port, self.baudrate, timeout=self._read_timeout_s)
        except (serial.SerialException, OSError) as exc:
            logger.warning(f"Cannot open gyroscope on {self.port}: {exc}")
            return False
        self._serial.reset_input_buffer()
        return True

    def _worker(self, interval_s: float, callback: Callable[[RotationSample], None]) -> None:
        # Fixed cadence: only the newest sample of each tick is delivered.
        while not self._stop_event.wait(interval_s):
            sample = self._read_latest()
            if sample is None:
                continue
            try:
                callback(sample)
            except Exception:
                logger.exception("Rotation sample callback failed")

    def _read_latest(self) -> Optional[RotationSample]:
        ser = self._serial
        if ser is None:
            return None
        latest = None
        try:
            while ser.in_waiting > 0:
                line = ser.readline()
                if not line:
                    break
                sample = parse_rotation_line(line)
                if sample is None:
                    self.skipped_lines += 1
                    continue
                latest = sample
        except (serial.SerialException, OSError) as exc:
            logger.error(f"Error reading gyroscope updates: {exc}")
            return None
        if latest is None:
            logger.debug("No rotation rate data received")
        return latest
