"""Detailed information about a single drive."""

from __future__ import annotations

import re
import subprocess
import sys

from .benchmark import DEFAULT_BENCHMARK_THRESHOLDS, benchmark_drive, benchmark_summary
from .device import (
    DeviceError,
    current_platform,
    ensure_removable_device,
    is_system_drive,
    validate_device,
)

_GIB = 1024 * 1024 * 1024

_RELEVANT_MAC_FIELDS = (
    "Device / Media Name:",
    "Volume Name:",
    "File System Personality:",
    "Disk Size:",
    "Volume Free Space:",
    "Volume Used Space:",
    "Internal:",
    "Removable Media:",
)

_DRIVE_TYPE_NAMES = {
    "2": "Removable",
    "3": "Fixed/Local",
    "4": "Network",
    "5": "CD-ROM",
}


def _command_output(args: list[str]) -> str:
    try:
        completed = subprocess.run(
            args, capture_output=True, text=True, errors="replace", check=True
        )
    except (OSError, subprocess.CalledProcessError) as err:
        raise DeviceError(str(err)) from err
    return completed.stdout or ""


def filter_mac_info_lines(output: str) -> list[str]:
    """Return the lines of ``diskutil info`` output worth showing."""
    return [
        line
        for line in output.split("\n")
        if any(field in line for field in _RELEVANT_MAC_FIELDS)
    ]


def format_windows_info(output: str) -> list[str]:
    """Turn wmic's header and value rows into "Header: value" lines."""
    lines = output.split("\n")
    if len(lines) < 2:
        return []
    headers = lines[0].split()
    values = re.split(r"\s+", lines[1].strip())

    formatted = []
    for header, value in zip(headers, values):
        if header in ("Size", "FreeSpace"):
            try:
                value = f"{float(value) / _GIB:.2f} GB"
            except ValueError:
                pass
        if header == "DriveType":
            value = _DRIVE_TYPE_NAMES.get(value, value)
        formatted.append(f"{header:<20s}: {value}")
    return formatted


def show_drive_info(device: str, system: str | None = None) -> None:
    """Print details and a performance test for a removable drive."""
    system = system if system is not None else current_platform()
    validate_device(device, system)
    ensure_removable_device(device, system)

    title = f"Drive Information for {device}"
    print(title)
    print("=" * len(title))

    if system == "darwin":
        show_mac_drive_info(device)
    elif system == "windows":
        show_windows_drive_info(device)

    print()
    perf_title = "Performance Test:"
    print(perf_title)
    print("-" * len(perf_title))
    print("Running benchmark...")
    result = benchmark_drive(device, system)
    print(benchmark_summary(result, DEFAULT_BENCHMARK_THRESHOLDS))


def show_mac_drive_info(device: str) -> None:
    """Print the relevant lines of ``diskutil info`` for the device."""
    try:
        output = _command_output(["diskutil", "info", device])
    except DeviceError as err:
        print(f"Error getting drive info: {err}", file=sys.stderr)
        return
    for line in filter_mac_info_lines(output):
        print(line)


def show_windows_drive_info(device: str) -> None:
    """Print wmic's description of the drive and warn about system drives."""
    letter = device[:-1] if device.endswith(":") else device
    try:
        output = _command_output(
            [
                "wmic",
                "logicaldisk",
                "where",
                f"name='{letter}:'",
                "get",
                "description,filesystem,freespace,size,volumename,drivetype",
            ]
        )
    except DeviceError as err:
        print(f"Error getting drive info: {err}", file=sys.stderr)
        return

    for line in format_windows_info(output):
        print(line)

    if is_system_drive(device, "windows"):
        print("\n  WARNING: This appears to be a SYSTEM DRIVE")
        print("  Formatting this drive is NOT RECOMMENDED")