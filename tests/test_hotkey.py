from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

import hotkey
from hotkey import GlobalHotkeyAdapter


def _adapter(calls: list[str]) -> GlobalHotkeyAdapter:
    return GlobalHotkeyAdapter(
        {
            "Key.f8": lambda: calls.append("toggle"),
            "Key.page_up": lambda: calls.append("increase"),
        }
    )


def test_press_fires_binding_once_until_release() -> None:
    calls: list[str] = []
    adapter = _adapter(calls)

    adapter._on_press("Key.f8")
    adapter._on_press("Key.f8")  # auto-repeat
    adapter._on_release("Key.f8")
    adapter._on_press("Key.f8")

    assert calls == ["toggle", "toggle"]


def test_independent_keys_do_not_block_each_other() -> None:
    calls: list[str] = []
    adapter = _adapter(calls)

    adapter._on_press("Key.f8")
    adapter._on_press("Key.page_up")

    assert calls == ["toggle", "increase"]


def test_unbound_keys_are_ignored() -> None:
    calls: list[str] = []
    adapter = _adapter(calls)

    adapter._on_press("Key.space")
    adapter._on_release("Key.space")

    assert calls == []


@patch("hotkey.keyboard")
def test_start_and_stop_listener(mock_keyboard: MagicMock) -> None:
    adapter = _adapter([])

    adapter.start()
    mock_keyboard.Listener.assert_called_once()
    mock_keyboard.Listener.return_value.start.assert_called_once()

    adapter.stop()
    mock_keyboard.Listener.return_value.stop.assert_called_once()
    adapter.stop()


def test_start_raises_without_pynput(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(hotkey, "keyboard", None)

    with pytest.raises(RuntimeError, match="pynput is not installed"):
        _adapter([]).start()
