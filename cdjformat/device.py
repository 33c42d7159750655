"""Drive detection, validation, mount-point lookup and ejection."""

from __future__ import annotations

import os
import re
import subprocess
import sys
from dataclasses import dataclass

DISK_ID_REGEX = re.compile(r"/dev/(disk\d+)")
SIZE_REGEX = re.compile(r"([\d.]+)\s*(GB|MB|TB|Bytes)")

_GIB = 1024 * 1024 * 1024


class DeviceError(Exception):
    """Raised when a device is invalid, unsafe or cannot be queried."""


@dataclass
class DriveInfo:
    """Summary of a drive as reported by the operating system."""

    device: str = ""
    label: str = ""
    filesystem: str = ""
    size_gb: float = 0.0
    free_gb: float = 0.0
    type: str = ""
    is_system: bool = False


def current_platform() -> str:
    """Return "darwin", "windows" or the raw platform name."""
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("win"):
        return "windows"
    return sys.platform


def _system(system: str | None) -> str:
    return system if system is not None else current_platform()


def _drive_letter(device: str) -> str:
    return device[:-1] if device.endswith(":") else device


def _run_output(args: list[str]) -> str:
    """Run a command and return its standard output."""
    try:
        completed = subprocess.run(
            args, capture_output=True, text=True, errors="replace", check=True
        )
    except (OSError, subprocess.CalledProcessError) as err:
        raise DeviceError(str(err)) from err
    return completed.stdout


def _run_combined(args: list[str]) -> tuple[int, str]:
    """Run a command, returning its exit code and merged stdout/stderr."""
    completed = subprocess.run(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    )
    return completed.returncode, completed.stdout or ""


def _diskutil_info(device: str) -> list[str] | None:
    try:
        return _run_output(["diskutil", "info", device]).split("\n")
    except DeviceError:
        return None


def validate_device(device: str, system: str | None = None) -> None:
    """Check that ``device`` is written the way the platform expects."""
    system = _system(system)
    if system == "darwin":
        if not device.startswith("disk"):
            raise DeviceError("invalid device format. Expected diskN (e.g., disk2)")
    elif system == "windows":
        if len(device) < 2 or device[1] != ":":
            raise DeviceError("invalid drive format. Expected X: (e.g., E:)")


def ensure_removable_device(device: str, system: str | None = None) -> None:
    """Refuse system drives and anything not detected as removable."""
    if is_system_drive(device, system):
        raise DeviceError(
            f"{device} appears to be a system/internal drive. Operation blocked for safety"
        )
    if not is_removable_drive(device, system):
        raise DeviceError(
            f"{device} is not detected as a removable USB drive. "
            "Only removable drives are supported"
        )


def parse_size_to_gb(text: str) -> float:
    """Convert a size such as "16.0 GB" or "1024 Bytes" to gigabytes."""
    match = SIZE_REGEX.search(text)
    if match is None:
        return 0.0
    try:
        size = float(match.group(1))
    except ValueError:
        size = 0.0
    unit = match.group(2)
    if unit == "TB":
        return size * 1024
    if unit == "GB":
        return size
    if unit == "MB":
        return size / 1024
    return size / _GIB


def is_system_drive(device: str, system: str | None = None) -> bool:
    """Return True if the device looks like an internal or system drive."""
    system = _system(system)
    if system == "darwin":
        lines = _diskutil_info(device)
        if lines is None:
            return False
        return any(
            ("Internal:" in line or "System Image:" in line) and "Yes" in line
            for line in lines
        )
    if system == "windows":
        try:
            if windows_drive_type(device) == "3":
                return True
        except DeviceError:
            pass
        return _drive_letter(device).lower() == "c"
    return False


def is_removable_drive(device: str, system: str | None = None) -> bool:
    """Return True if the device is reported as removable or external."""
    system = _system(system)
    if system == "darwin":
        lines = _diskutil_info(device)
        if lines is None:
            return False
        internal = False
        removable = False
        for raw in lines:
            line = raw.strip()
            if "Yes" not in line:
                continue
            if line.startswith("Internal:"):
                internal = True
            if line.startswith(("Removable Media:", "Ejectable:", "External:")):
                removable = True
        return removable and not internal
    if system == "windows":
        try:
            return windows_drive_type(device) == "2"
        except DeviceError:
            return False
    return False


def windows_drive_type(device: str) -> str:
    """Return the WMI drive-type code for a drive letter."""
    letter = _drive_letter(device)
    if not letter:
        raise DeviceError("invalid drive letter")
    output = _run_output(
        ["wmic", "logicaldisk", "where", f"name='{letter}:'", "get", "drivetype"]
    )
    for raw in output.split("\n"):
        line = raw.strip()
        if not line or line.lower() == "drivetype":
            continue
        return line
    raise DeviceError("drive type not found")


def get_drive_size(device: str, system: str | None = None) -> float:
    """Return the drive's size in gigabytes, or 0 when it cannot be found."""
    system = _system(system)
    if system == "darwin":
        lines = _diskutil_info(device)
        if lines is None:
            return 0.0
        for line in lines:
            if "Disk Size:" in line:
                _, _, value = line.partition(":")
                return parse_size_to_gb(value)
    elif system == "windows":
        letter = _drive_letter(device)
        try:
            output = _run_output(
                ["wmic", "logicaldisk", "where", f"name='{letter}:'", "get", "size"]
            )
        except DeviceError:
            return 0.0
        for raw in output.split("\n"):
            line = raw.strip()
            if line and line != "Size":
                try:
                    return float(line) / _GIB
                except ValueError:
                    continue
    return 0.0


def resolve_test_file_path(
    device: str, file_name: str, system: str | None = None
) -> tuple[str, str]:
    """Return the path of ``file_name`` on the device and its mount point."""
    mount_point = get_device_mount_point(device, system)
    return os.path.join(mount_point, file_name), mount_point


def get_device_mount_point(device: str, system: str | None = None) -> str:
    """Return the directory where the device is mounted."""
    system = _system(system)
    if system == "darwin":
        output = _run_output(["diskutil", "info", device])
        mount_point = ""
        for line in output.split("\n"):
            if "Mount Point:" in line:
                mount_point = line.partition(":")[2].strip()
                break
        if not mount_point or mount_point.lower() in ("not mounted", "not applicable"):
            raise DeviceError(
                f"device {device} is not mounted; please mount it before verifying"
            )
        try:
            os.stat(mount_point)
        except OSError as err:
            raise DeviceError(f"unable to access mount point {mount_point}: {err}") from err
        return mount_point
    if system == "windows":
        letter = _drive_letter(device)
        if not letter:
            raise DeviceError(f"invalid drive format: {device}")
        path = f"{letter.upper()}:\\"
        try:
            os.stat(path)
        except OSError as err:
            raise DeviceError(f"unable to access {path}: {err}") from err
        return path
    raise DeviceError(f"unsupported operating system: {system}")


def eject_device(device: str, system: str | None = None) -> None:
    """Ask the operating system to eject the device."""
    system = _system(system)
    if system == "darwin":
        args = ["diskutil", "eject", device]
    elif system == "windows":
        letter = _drive_letter(device)
        script = (
            "(New-Object -comObject Shell.Application).NameSpace(17)"
            f".ParseName('{letter}:').InvokeVerb('Eject')"
        )
        args = ["powershell", "-Command", script]
    else:
        raise DeviceError("unsupported operating system")

    try:
        code, output = _run_combined(args)
    except OSError as err:
        raise DeviceError(f"eject failed: {err}\nOutput: ") from err
    if code != 0:
        raise DeviceError(f"eject failed: exit status {code}\nOutput: {output}")


def eject_drive(device: str, system: str | None = None) -> None:
    """Validate and safely eject a removable drive, reporting progress."""
    validate_device(device, system)
    ensure_removable_device(device, system)
    print(f"Ejecting {device}...")
    eject_device(device, system)
    print("Drive ejected successfully!")
    print("It is now safe to remove the drive.")