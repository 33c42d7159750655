"""Integrity verification of one or more drives."""

from __future__ import annotations

import sys

from .benchmark import run_integrity_check, write_verify_log
from .device import (
    DeviceError,
    ensure_removable_device,
    resolve_test_file_path,
    validate_device,
)

VERIFY_FILE_NAME = "cdjf_verify_test.tmp"
_MIB = 1024 * 1024


def verify_drives(devices, size_mb: int = 64, system: str | None = None) -> bool:
    """Write and read back a test pattern on each drive.

    Returns True when every drive passed. Each drive's report is written
    as a log file in the current directory.
    """
    if size_mb <= 0:
        raise ValueError("Integrity test size must be greater than zero.")

    test_size = size_mb * _MIB
    print(
        "Starting integrity verification. This may take a few minutes per drive "
        "depending on speed."
    )

    failed = False
    for device in devices:
        print(f"\n[{device}] Preparing verification...")

        try:
            validate_device(device, system)
            ensure_removable_device(device, system)
            test_file, mount_point = resolve_test_file_path(
                device, VERIFY_FILE_NAME, system
            )
        except DeviceError as err:
            print(f"[{device}] Error: {err}", file=sys.stderr)
            failed = True
            continue

        print(f"[{device}] Mount point: {mount_point}")
        print(f"[{device}] Writing {test_size / _MIB:.1f} MB test pattern...")

        result = run_integrity_check(test_file, test_size)

        print(f"[{device}] Write speed: {result.write_mbps:.2f} MB/s")
        print(f"[{device}] Read speed: {result.read_mbps:.2f} MB/s")

        verified_mb = result.bytes_verified / _MIB
        if result.success():
            print(f"[{device}] Integrity check PASSED ({verified_mb:.1f} MB verified).")
        else:
            print(f"[{device}] Integrity check FAILED after {verified_mb:.1f} MB.")
            for message in result.errors:
                print(f"    {message}")
            failed = True

        try:
            log_path = write_verify_log(device, mount_point, test_size, result)
        except OSError as err:
            print(
                f"[{device}] Warning: unable to write verification log: {err}",
                file=sys.stderr,
            )
        else:
            print(f"[{device}] Detailed log saved to {log_path}")

    return not failed