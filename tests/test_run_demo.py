import sys

import pytest

pytest.importorskip("PySide6.QtWidgets")

from dynscroll import run_demo  # noqa: E402
from dynscroll.utils.settings import settings  # noqa: E402


def test_crash_log_entries_are_appended(tmp_path, capsys):
    path = tmp_path / "crash.log"
    try:
        raise RuntimeError("first failure")
    except RuntimeError:
        run_demo.append_crash_log("FIRST", sys.exc_info(), path=str(path))
    try:
        raise ValueError("second failure")
    except ValueError:
        run_demo.append_crash_log("SECOND", path=str(path))

    text = path.read_text(encoding="utf-8")
    assert text.index("FIRST ---") < text.index("RuntimeError: first failure")
    assert text.index("RuntimeError: first failure") < text.index("SECOND ---")
    assert "ValueError: second failure" in text
    assert f"logged to {path}" in capsys.readouterr().out


def test_unwritable_crash_log_is_reported_not_raised(tmp_path, capsys):
    path = tmp_path / "missing" / "crash.log"
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        run_demo.append_crash_log("CRASH", sys.exc_info(), path=str(path))

    assert not path.exists()
    assert "Could not write" in capsys.readouterr().out


def test_crash_handler_logs_then_defers_to_the_default_hook(tmp_path, monkeypatch):
    path = tmp_path / "crash.log"
    forwarded = []
    monkeypatch.setattr(run_demo, "CRASH_LOG_PATH", str(path))
    monkeypatch.setattr(sys, "__excepthook__", lambda *exc_info: forwarded.append(exc_info[0]))
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)

    run_demo.install_crash_handlers()
    try:
        raise KeyError("lost")
    except KeyError:
        sys.excepthook(*sys.exc_info())

    assert forwarded == [KeyError]
    assert "UNHANDLED EXCEPTION" in path.read_text(encoding="utf-8")


def test_settings_writes_are_broadcast():
    received = []
    settings.change.connect(lambda key, value: received.append((key, value)))
    try:
        settings.setValue("dynscroll_test_key", 3)
    finally:
        settings.remove("dynscroll_test_key")

    assert ("dynscroll_test_key", 3) in received
