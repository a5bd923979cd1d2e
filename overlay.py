"""Control window: scale readout, mic toggle and the -/+ buttons."""

from __future__ import annotations

from typing import Callable

from models import ScaleVector

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QHBoxLayout = object  # type: ignore
    QLabel = object  # type: ignore
    QPushButton = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

_MIC_ON_STYLE = "font-size: 18px; padding: 12px; border-radius: 24px; background: rgba(255,68,68,180);"
_MIC_OFF_STYLE = "font-size: 18px; padding: 12px; border-radius: 24px; background: rgba(68,200,68,180);"
_STATUS_STYLE = "color: white; font-size: 14px; padding: 8px; background: rgba(0,0,0,190); border-radius: 8px;"
_ERROR_STYLE = "color: #FF6B6B; font-size: 14px; padding: 8px; background: rgba(0,0,0,210); border-radius: 8px;"


class ControlPanel(QWidget):
    def __init__(
        self,
        on_toggle: Callable[[], None],
        on_increase: Callable[[], None],
        on_decrease: Callable[[], None],
    ) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowTitle("Scale Control")
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.Tool)
        self.setFixedWidth(320)

        self._mic_button = QPushButton("🎤")
        self._mic_button.clicked.connect(on_toggle)
        self._scale_label = QLabel("")
        self._scale_label.setAlignment(Qt.AlignCenter)
        self._scale_label.setStyleSheet("font-size: 22px; padding: 8px;")
        self._status_label = QLabel("")
        self._status_label.setWordWrap(True)
        self._status_label.setStyleSheet(_STATUS_STYLE)
        self._status_label.hide()

        minus = QPushButton("−")
        minus.clicked.connect(on_decrease)
        plus = QPushButton("+")
        plus.clicked.connect(on_increase)
        buttons = QHBoxLayout()
        buttons.addWidget(minus)
        buttons.addWidget(plus)

        layout = QVBoxLayout()
        layout.addWidget(self._mic_button, alignment=Qt.AlignHCenter)
        layout.addWidget(self._scale_label)
        layout.addWidget(self._status_label)
        layout.addLayout(buttons)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None
        self.set_listening(False)

    def set_scale(self, scale: ScaleVector) -> None:
        self._scale_label.setText(f"{scale.x:.2f} × {scale.y:.2f} × {scale.z:.2f}")

    def set_listening(self, listening: bool) -> None:
        """The mic button must always reflect the real listening state."""
        self._mic_button.setText("🔇" if listening else "🎤")
        self._mic_button.setStyleSheet(_MIC_ON_STYLE if listening else _MIC_OFF_STYLE)
        self._mic_button.setToolTip("Stop listening" if listening else "Start listening")

    def show_status(self, text: str, hide_after_ms: int = 1500) -> None:
        self._status_label.setStyleSheet(_STATUS_STYLE)
        self._show_message(text, hide_after_ms)

    def show_error(self, text: str, hide_after_ms: int = 3000) -> None:
        self._status_label.setStyleSheet(_ERROR_STYLE)
        self._show_message(f"⚠️ {text}", hide_after_ms)

    def _show_message(self, text: str, hide_after_ms: int) -> None:
        self._cancel_hide_timer()
        self._status_label.setText(text)
        self._status_label.show()
        self._hide_timer = QTimer(self)
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self._status_label.hide)
        self._hide_timer.start(hide_after_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
