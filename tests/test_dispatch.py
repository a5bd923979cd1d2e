from __future__ import annotations

import threading

from dispatch import SerialDispatcher


def test_tasks_run_in_posting_order_on_one_thread() -> None:
    dispatcher = SerialDispatcher()
    dispatcher.start()
    seen: list[int] = []
    threads: set[int] = set()

    def task(i: int) -> None:
        seen.append(i)
        threads.add(threading.get_ident())

    for i in range(50):
        dispatcher.post(lambda i=i: task(i))
    dispatcher.flush()
    dispatcher.stop()

    assert seen == list(range(50))
    assert len(threads) == 1
    assert threading.get_ident() not in threads


def test_failing_task_does_not_kill_owner_thread() -> None:
    dispatcher = SerialDispatcher()
    dispatcher.start()
    seen: list[str] = []

    def boom() -> None:
        raise ValueError("boom")

    dispatcher.post(boom)
    dispatcher.post(lambda: seen.append("after"))
    dispatcher.flush()

    assert seen == ["after"]
    assert dispatcher.is_running is True
    dispatcher.stop()
    assert dispatcher.is_running is False


def test_owner_thread_detection() -> None:
    dispatcher = SerialDispatcher()
    dispatcher.start()
    result: list[bool] = []

    dispatcher.post(lambda: result.append(dispatcher.is_owner_thread()))
    dispatcher.flush()

    assert result == [True]
    assert dispatcher.is_owner_thread() is False
    dispatcher.stop()


def test_start_and_stop_are_idempotent() -> None:
    dispatcher = SerialDispatcher()
    dispatcher.stop()
    dispatcher.start()
    dispatcher.start()
    dispatcher.stop()
    dispatcher.stop()

    assert dispatcher.is_running is False
