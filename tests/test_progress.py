import io
from unittest.mock import patch

import pytest

from cdjformat.progress import ProgressBar, format_duration


@pytest.fixture
def clock():
    now = [1000.0]
    with patch("cdjformat.progress.time.monotonic", side_effect=lambda: now[0]):
        yield now


def test_initial_render_has_no_eta(clock):
    out = io.StringIO()
    bar = ProgressBar("Write", 100, stream=out)
    text = out.getvalue()
    assert text.startswith("\rWrite ")
    assert "ETA --:--" in text
    assert bar.current == 0
    assert not bar.completed


def test_add_clamps_to_total(clock):
    bar = ProgressBar("Read", 10, stream=io.StringIO())
    bar.add(25)
    assert bar.current == 10


def test_set_clamps_both_ends(clock):
    bar = ProgressBar("Format", 100, stream=io.StringIO())
    bar.set(-5)
    assert bar.current == 0
    bar.set(500)
    assert bar.current == 100


def test_set_without_total_is_unclamped(clock):
    bar = ProgressBar("Format", 0, stream=io.StringIO())
    bar.set(-5)
    assert bar.current == -5


def test_finish_fills_and_ends_line(clock):
    out = io.StringIO()
    bar = ProgressBar("Verify", 50, stream=out)
    bar.add(10)
    bar.finish()
    assert bar.current == 50
    assert bar.completed
    assert out.getvalue().endswith("\n")
    assert "100.00%" in out.getvalue()


def test_updates_ignored_after_completion(clock):
    out = io.StringIO()
    bar = ProgressBar("Write", 50, stream=out)
    bar.stop()
    length = len(out.getvalue())
    bar.add(10)
    bar.set(20)
    bar.update_total(500)
    bar.finish()
    assert bar.current == 0
    assert bar.total == 50
    assert len(out.getvalue()) == length


def test_stop_keeps_current(clock):
    bar = ProgressBar("Write", 50, stream=io.StringIO())
    bar.add(5)
    bar.stop()
    assert bar.current == 5
    assert bar.completed


def test_update_total(clock):
    bar = ProgressBar("Write", 100, stream=io.StringIO())
    bar.add(80)
    bar.update_total(0)
    assert bar.total == 100
    bar.update_total(40)
    assert bar.total == 40
    assert bar.current == 40


def test_render_throttled(clock):
    out = io.StringIO()
    bar = ProgressBar("Write", 100, stream=out)
    bar.add(1)
    bar.add(1)
    assert out.getvalue().count("\r") == 1
    clock[0] += 0.2
    bar.add(1)
    assert out.getvalue().count("\r") == 2
    assert bar.current == 3


def test_eta_shown_once_progress_made(clock):
    out = io.StringIO()
    bar = ProgressBar("Write", 100, stream=out)
    clock[0] += 1.0
    bar.add(50)
    last = out.getvalue().split("\r")[-1]
    assert "ETA --:--" not in last
    assert "ETA " in last


def test_context_manager_stops(clock):
    out = io.StringIO()
    with ProgressBar("Write", 10, stream=out) as bar:
        bar.add(3)
    assert bar.completed
    assert bar.current == 3
    assert out.getvalue().endswith("\n")


def test_format_duration_negative():
    assert format_duration(-1) == "--:--"


def test_format_duration_shapes():
    assert format_duration(65) == "01:05"
    assert format_duration(3725) == "01:02:05"
    assert format_duration(59.9).startswith("00:")
    assert format_duration(0) == format_duration(0.5)