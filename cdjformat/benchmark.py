"""Drive speed benchmarks, integrity checks and verification reports."""

from __future__ import annotations

import contextlib
import os
import time
from dataclasses import dataclass, field
from datetime import datetime

from .device import DeviceError, resolve_test_file_path
from .progress import ProgressBar

_MIB = 1024 * 1024

_MEASURE_CHUNK = 4 * _MIB
_MIN_SAMPLE_SECONDS = 0.4
_INITIAL_SAMPLE = 32 * _MIB
_MAX_SAMPLE = 256 * _MIB

_INTEGRITY_CHUNK = _MIB

BENCHMARK_FILE_NAME = "cdjf_benchmark_test.tmp"

_PATTERN_CYCLE = bytes(range(256))
_NAME_REPLACEMENTS = str.maketrans({":": "", "/": "_", "\\": "_", " ": "_"})


@dataclass
class BenchmarkResult:
    """Measured write and read throughput in MB/s; 0 means unavailable."""

    write_mbps: float = 0.0
    read_mbps: float = 0.0


@dataclass
class IntegrityResult(BenchmarkResult):
    """Outcome of writing and reading back a test pattern."""

    bytes_written: int = 0
    bytes_verified: int = 0
    errors: list[str] = field(default_factory=list)

    def success(self) -> bool:
        """Return True when no errors were recorded."""
        return not self.errors


@dataclass(frozen=True)
class BenchmarkThresholds:
    """Speed limits in MB/s; a zero limit is not applied."""

    extremely_slow: float = 0.0
    very_slow: float = 0.0
    slightly_slow: float = 0.0
    prompt: float = 0.0


DEFAULT_BENCHMARK_THRESHOLDS = BenchmarkThresholds(
    extremely_slow=2, very_slow=3, slightly_slow=6, prompt=5
)


def benchmark_severity(
    speed: float, thresholds: BenchmarkThresholds = DEFAULT_BENCHMARK_THRESHOLDS
) -> str:
    """Classify a write speed against the thresholds."""
    if speed <= 0:
        return "Unable to benchmark drive."
    if 0 < thresholds.extremely_slow and speed < thresholds.extremely_slow:
        return "WARNING: Drive appears to be extremely slow."
    if 0 < thresholds.very_slow and speed < thresholds.very_slow:
        return "WARNING: Drive appears to be very slow."
    if 0 < thresholds.slightly_slow and speed < thresholds.slightly_slow:
        return "WARNING: Drive appears to be slightly slow."
    return "Performance is OK."


def benchmark_summary(
    result: BenchmarkResult,
    thresholds: BenchmarkThresholds = DEFAULT_BENCHMARK_THRESHOLDS,
) -> str:
    """Describe a benchmark result in a few lines of text."""
    severity = benchmark_severity(result.write_mbps, thresholds)
    if result.write_mbps <= 0 and result.read_mbps <= 0:
        return severity

    lines = [severity]
    if result.write_mbps > 0:
        lines.append(f"  Write Speed: {result.write_mbps:.2f} MB/s")
    else:
        lines.append("  Write Speed: unavailable")
    if result.read_mbps > 0:
        lines.append(f"  Read Speed: {result.read_mbps:.2f} MB/s")
    else:
        lines.append("  Read Speed: unavailable")
    return "\n".join(lines)


def benchmark_drive(device: str, system: str | None = None) -> BenchmarkResult:
    """Benchmark the drive by writing and reading a file at its mount point."""
    try:
        test_file, _ = resolve_test_file_path(device, BENCHMARK_FILE_NAME, system)
    except DeviceError:
        return BenchmarkResult()
    return run_io_measure(test_file)


def _mbps(byte_count: int, seconds: float) -> float:
    if seconds > 0 and byte_count > 0:
        return byte_count / seconds / _MIB
    return 0.0


def run_io_measure(test_file: str) -> BenchmarkResult:
    """Measure sequential write and read speed using a temporary file.

    The write sample starts at 32 MB and doubles, up to 256 MB, until it
    takes long enough to be meaningful. Failures leave the affected speed
    at zero.
    """
    result = BenchmarkResult()
    with contextlib.suppress(OSError):
        os.remove(test_file)
    try:
        handle = open(test_file, "wb", buffering=0)
    except OSError:
        return result
    try:
        _measure(handle, test_file, result)
    finally:
        with contextlib.suppress(OSError):
            os.remove(test_file)
    return result


def _measure(handle, test_file: str, result: BenchmarkResult) -> None:
    chunk = bytes(_MEASURE_CHUNK)
    target = _INITIAL_SAMPLE
    print(f"  Running write benchmark (minimum {_INITIAL_SAMPLE / _MIB:.0f} MB sample)...")

    with ProgressBar("Write", target) as write_bar:
        write_start = time.monotonic()
        written = 0
        try:
            with handle:
                while (remaining := target - written) > 0:
                    piece = chunk if remaining >= len(chunk) else chunk[:remaining]
                    n = handle.write(piece) or 0
                    if n > 0:
                        written += n
                        write_bar.add(n)
                    if n != len(piece):
                        return
                    if written >= target:
                        elapsed = time.monotonic() - write_start
                        if elapsed >= _MIN_SAMPLE_SECONDS or target >= _MAX_SAMPLE:
                            break
                        target = min(target * 2, _MAX_SAMPLE)
                        write_bar.update_total(target)
                        print(
                            f"  Extending write sample to {target / _MIB:.0f} MB "
                            "to improve accuracy..."
                        )
                os.fsync(handle.fileno())
        except OSError:
            return
        write_duration = time.monotonic() - write_start
        result.write_mbps = _mbps(written, write_duration)
        write_bar.finish()

    try:
        read_file = open(test_file, "rb", buffering=0)
    except OSError:
        return

    print("  Running read benchmark...")
    with read_file, ProgressBar("Read", written) as read_bar:
        read_start = time.monotonic()
        total_read = 0
        try:
            while data := read_file.read(_MEASURE_CHUNK):
                total_read += len(data)
                read_bar.add(len(data))
        except OSError:
            return
        read_duration = time.monotonic() - read_start
        result.read_mbps = _mbps(total_read, read_duration)
        read_bar.finish()

    if write_duration < _MIN_SAMPLE_SECONDS:
        print(
            "  Write benchmark completed very quickly even at the maximum payload; "
            "reported write speed may understate sustained performance."
        )
    if read_duration < _MIN_SAMPLE_SECONDS:
        print(
            "  Read benchmark completed very quickly; reported read speed may "
            "benefit from OS caching."
        )


def fill_pattern(length: int, offset: int) -> bytes:
    """Return ``length`` bytes of the test pattern starting at ``offset``.

    The byte at absolute position ``p`` is ``p & 0xFF``.
    """
    if length <= 0:
        return b""
    start = offset % 256
    repeats = (start + length) // 256 + 1
    return (_PATTERN_CYCLE * repeats)[start : start + length]


def run_integrity_check(test_file: str, test_size: int) -> IntegrityResult:
    """Write a known pattern to ``test_file``, read it back and compare."""
    result = IntegrityResult()
    try:
        handle = open(test_file, "wb", buffering=0)
    except OSError as err:
        result.errors.append(f"create test file: {err}")
        return result
    try:
        _check_integrity(handle, test_file, test_size, result)
    finally:
        with contextlib.suppress(OSError):
            os.remove(test_file)
    return result


def _write_pattern(handle, test_size: int, bar: ProgressBar) -> tuple[int, str | None]:
    written = 0
    while written < test_size:
        to_write = min(_INTEGRITY_CHUNK, test_size - written)
        piece = fill_pattern(to_write, written)
        offset = written
        try:
            n = handle.write(piece) or 0
        except OSError as err:
            return written, f"write at offset {offset}: {err}"
        if n > 0:
            bar.add(n)
            written += n
        if n != to_write:
            return written, (
                f"short write at offset {offset} (expected {to_write} wrote {n})"
            )
    try:
        os.fsync(handle.fileno())
    except OSError as err:
        return written, f"sync: {err}"
    return written, None


def _check_integrity(handle, test_file: str, test_size: int, result: IntegrityResult) -> None:
    with ProgressBar("Write", test_size) as write_bar:
        write_start = time.monotonic()
        written, error = _write_pattern(handle, test_size, write_bar)
        result.bytes_written = written
        if error is not None:
            with contextlib.suppress(OSError):
                handle.close()
            result.errors.append(error)
            return
        try:
            handle.close()
        except OSError as err:
            result.errors.append(f"close after write: {err}")
            return
        result.write_mbps = _mbps(written, time.monotonic() - write_start)
        write_bar.finish()

    try:
        read_file = open(test_file, "rb", buffering=0)
    except OSError as err:
        result.errors.append(f"reopen for read: {err}")
        return

    with read_file, ProgressBar("Verify", written) as verify_bar:
        verified = 0
        read_start = time.monotonic()
        while True:
            try:
                data = read_file.read(_INTEGRITY_CHUNK)
            except OSError as err:
                result.errors.append(f"read error after {verified} bytes: {err}")
                break
            if not data:
                break
            mismatch = data != fill_pattern(len(data), verified)
            if mismatch:
                result.errors.append(f"data mismatch at offset {verified}")
            verified += len(data)
            verify_bar.add(len(data))
            if mismatch:
                break
        result.read_mbps = _mbps(verified, time.monotonic() - read_start)
        result.bytes_verified = verified
        verify_bar.finish()


def _rfc3339(moment: datetime) -> str:
    stamp = moment.isoformat(timespec="seconds")
    return stamp[:-6] + "Z" if stamp.endswith("+00:00") else stamp


def write_verify_log(
    device: str,
    mount_point: str,
    test_size: int,
    result: IntegrityResult,
    directory: str | None = None,
) -> str:
    """Write a verification report and return the path of the log file."""
    now = datetime.now().astimezone()
    file_name = (
        f"cdjf-verify-{sanitize_device_name(device)}-{now.strftime('%Y%m%d-%H%M%S')}.log"
    )
    path = os.path.join(directory, file_name) if directory else file_name

    lines = [
        "CDJF Integrity Verification Report",
        f"Timestamp: {_rfc3339(now)}",
        f"Device: {device}",
        f"Mount point: {mount_point}",
        f"Test size: {test_size / _MIB:.1f} MB",
        f"Bytes written: {result.bytes_written / _MIB:.1f} MB",
        f"Bytes verified: {result.bytes_verified / _MIB:.1f} MB",
        f"Write speed: {result.write_mbps:.2f} MB/s",
        f"Read speed: {result.read_mbps:.2f} MB/s",
    ]
    if result.success():
        lines.append("Status: PASS - No integrity issues detected.")
    else:
        lines.append("Status: FAIL")
        lines.extend(f"Error: {message}" for message in result.errors)

    with open(path, "w", encoding="utf-8") as log:
        log.write("\n".join(lines) + "\n")
    return path


def sanitize_device_name(device: str) -> str:
    """Turn a device name into something safe to put in a file name."""
    cleaned = device.strip().translate(_NAME_REPLACEMENTS).strip("_")
    return cleaned or "drive"