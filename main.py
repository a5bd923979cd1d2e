"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from typing import Callable, Optional, Sequence

from config import JsonConfigStore
from dispatch import SerialDispatcher
from errors import describe
from hotkey import GlobalHotkeyAdapter
from interfaces import Dispatcher
from models import Command, CommandSource, ScaleVector
from motion_sensor import SerialGyroSensor
from overlay import ControlPanel
from pipeline import ScaleControl, build_scale_control
from recognizer import DashscopeRecognizerAdapter
from recorder import SoundDeviceRecorder

try:
    from PySide6.QtCore import QObject, QTimer, Signal
    from PySide6.QtWidgets import QApplication
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

FRAME_INTERVAL_MS = 33


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Scale Control")
    parser.add_argument("--debug", default=False, action="store_true", help="Enable debug logging")
    parser.add_argument("--headless", default=False, action="store_true", help="Run without a window")
    parser.add_argument("--no-voice", default=False, action="store_true", help="Do not listen at launch")
    parser.add_argument("--no-motion", default=False, action="store_true", help="Disable gyroscope control")
    parser.add_argument("--serial-port", default=None, help="Gyroscope serial port (overrides config)")
    return parser.parse_args(argv)


def setup_logger(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s:%(lineno)d | %(message)s",
    )


def _build(
    args: argparse.Namespace,
    store: JsonConfigStore,
    dispatcher: Dispatcher,
    **callbacks,  # noqa: ANN003
) -> ScaleControl:
    return build_scale_control(
        store,
        dispatcher,
        recorder=SoundDeviceRecorder(),
        recognizer=DashscopeRecognizerAdapter(
            api_key=store.get_api_key(),
            window_s=store.get_recognition_window_s(),
            silence_rms=store.get_silence_rms(),
        ),
        sensor=SerialGyroSensor(args.serial_port or store.get_serial_port(), store.get_baudrate()),
        **callbacks,
    )


def _hotkeys(store: JsonConfigStore, control: ScaleControl, on_toggle: Callable[[], None]) -> GlobalHotkeyAdapter:
    return GlobalHotkeyAdapter(
        {
            store.get_hotkey("toggle"): on_toggle,
            store.get_hotkey("increase"): lambda: control.press(Command.INCREASE),
            store.get_hotkey("decrease"): lambda: control.press(Command.DECREASE),
        }
    )


class QtDispatcher(QObject):
    """Marshals callables onto the GUI thread, which owns all scale writes."""

    task_signal = Signal(object)

    def __init__(self) -> None:
        super().__init__()
        self.task_signal.connect(self._run)

    def post(self, fn: Callable[[], None]) -> None:
        self.task_signal.emit(fn)

    def _run(self, fn: Callable[[], None]) -> None:
        fn()


class UIBridge(QObject):
    partial_signal = Signal(str)
    error_signal = Signal(str)
    listening_signal = Signal(bool)


class App:
    def __init__(self, args: argparse.Namespace) -> None:
        self.args = args
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.ui = UIBridge()
        self.dispatcher = QtDispatcher()
        self.control = _build(
            args,
            self.config_store,
            self.dispatcher,
            on_error=self._on_error,
            on_partial=self.ui.partial_signal.emit,
            on_listening_change=self.ui.listening_signal.emit,
        )
        self.hotkey = _hotkeys(
            self.config_store,
            self.control,
            on_toggle=lambda: self.dispatcher.post(self._on_toggle),
        )

        router = self.control.router
        self.panel = ControlPanel(
            on_toggle=self._on_toggle,
            on_increase=lambda: router.apply(Command.INCREASE, CommandSource.BUTTON),
            on_decrease=lambda: router.apply(Command.DECREASE, CommandSource.BUTTON),
        )
        self.ui.partial_signal.connect(self.panel.show_status)
        self.ui.error_signal.connect(self.panel.show_error)
        self.ui.listening_signal.connect(self.panel.set_listening)

        # Stand-in for the renderer: read the shared scale every frame.
        self.frame_timer = QTimer()
        self.frame_timer.timeout.connect(self._render_frame)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_error(self, code: str, message: str) -> None:
        logger.warning(f"{code}: {message}")
        self.ui.error_signal.emit(describe(code))

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_toggle(self) -> None:
        self.control.toggle.toggle()

    def _render_frame(self) -> None:
        self.panel.set_scale(self.control.scale_state.get())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.panel.show()
        self.frame_timer.start(FRAME_INTERVAL_MS)
        self.control.start(listen=not self.args.no_voice, use_motion=not self.args.no_motion)
        try:
            self.hotkey.start()
        except Exception as exc:
            logger.warning(f"Hotkeys disabled: {exc}")
            self.panel.show_error(f"Hotkeys disabled: {exc}")
        self.app.aboutToQuit.connect(self.shutdown)
        return self.app.exec()

    def shutdown(self) -> None:
        self.hotkey.stop()
        self.control.shutdown()
        self.frame_timer.stop()


def run_headless(args: argparse.Namespace) -> int:
    """Hotkeys as the control surface, scale changes logged from the owner thread."""
    store = JsonConfigStore()
    dispatcher = SerialDispatcher()
    dispatcher.start()

    def on_scale_change(scale: ScaleVector, source: CommandSource) -> None:
        logger.info(f"[{source.value}] scale = {scale.x:.2f}, {scale.y:.2f}, {scale.z:.2f}")

    def on_error(code: str, message: str) -> None:
        logger.warning(f"{describe(code)} ({message})")

    control = _build(args, store, dispatcher, on_error=on_error, on_scale_change=on_scale_change)
    hotkey = _hotkeys(store, control, on_toggle=lambda: dispatcher.post(control.toggle.toggle))
    control.start(listen=not args.no_voice, use_motion=not args.no_motion)
    try:
        hotkey.start()
    except Exception as exc:
        logger.warning(f"Hotkeys disabled: {exc}")

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("Exiting")
    finally:
        hotkey.stop()
        control.shutdown()
        dispatcher.stop()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logger(args.debug)
    if args.headless:
        return run_headless(args)
    return App(args).run()


if __name__ == "__main__":
    raise SystemExit(main())
