"""Text progress bar that shows completion, throughput and an ETA."""

from __future__ import annotations

import sys
import time
from typing import TextIO

_RENDER_INTERVAL = 0.1
_BAR_WIDTH = 30
_MIB = 1024 * 1024


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as MM:SS or HH:MM:SS."""
    if seconds < 0:
        return "--:--"
    whole = int(seconds)
    if seconds < 60:
        return f"00:{whole:02d}"
    if seconds < 3600:
        return f"{whole // 60:02d}:{whole % 60:02d}"
    return f"{whole // 3600:02d}:{whole // 60 % 60:02d}:{whole % 60:02d}"


class ProgressBar:
    """A single-line progress indicator with speed and ETA metrics.

    Redraws are throttled to one every 100 ms unless forced. Once finished
    or stopped, the bar ignores all further updates.
    """

    def __init__(self, label: str, total: int, stream: TextIO | None = None) -> None:
        self.label = label
        self.total = total
        self.current = 0
        self.completed = False
        self._stream = stream if stream is not None else sys.stdout
        self._start = time.monotonic()
        self._last_render: float | None = None
        self._render(force=True)

    def __enter__(self) -> ProgressBar:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def add(self, n: int) -> None:
        """Advance the bar by ``n`` units."""
        if self.completed:
            return
        self.current += n
        if self.total > 0 and self.current > self.total:
            self.current = self.total
        self._render()

    def set(self, n: int) -> None:
        """Set the bar's position, clamped to ``0..total`` when a total is known."""
        if self.completed:
            return
        self.current = n
        if self.total > 0:
            self.current = max(0, min(self.current, self.total))
        self._render()

    def finish(self) -> None:
        """Fill the bar, draw it a last time and end the line."""
        if self.completed:
            return
        if self.total > 0 and self.current < self.total:
            self.current = self.total
        self._close()

    def stop(self) -> None:
        """Draw the bar as it stands and end the line."""
        if self.completed:
            return
        self._close()

    def update_total(self, total: int) -> None:
        """Change the total; non-positive totals are ignored."""
        if self.completed or total <= 0:
            return
        self.total = total
        if self.current > self.total:
            self.current = self.total
        self._render()

    def _close(self) -> None:
        self._render(force=True)
        self._stream.write("\n")
        self._stream.flush()
        self.completed = True

    def _render(self, force: bool = False) -> None:
        if self.completed:
            return
        now = time.monotonic()
        if (
            not force
            and self._last_render is not None
            and now - self._last_render < _RENDER_INTERVAL
        ):
            return
        self._last_render = now

        fraction = 0.0
        if self.total > 0:
            fraction = min(self.current / self.total, 1.0)

        bar = "=" * _BAR_WIDTH
        speed_mb = 0.0
        eta = "ETA --:--"

        if self.current > 0:
            elapsed = now - self._start
            if elapsed > 0:
                bytes_per_second = self.current / elapsed
                speed_mb = bytes_per_second / _MIB
                if self.total > 0 and bytes_per_second > 0:
                    remaining = (self.total - self.current) / bytes_per_second
                    eta = "ETA " + format_duration(remaining)

        self._stream.write(
            f"\r{self.label:<10s} [{bar}] {fraction * 100:6.2f}% {speed_mb:6.2f} MB/s {eta}"
        )
        self._stream.flush()