"""Listing of the drives that can be prepared."""

from __future__ import annotations

import subprocess
import sys

from .device import DISK_ID_REGEX, DeviceError, DriveInfo, current_platform, parse_size_to_gb

_GIB = 1024 * 1024 * 1024

_DRIVE_TYPE_LABELS = {
    "1": "NoRoot",
    "2": "Removable",
    "3": "Local",
    "4": "Network",
    "5": "CDROM",
    "6": "RAMDisk",
}


def _command_output(args: list[str]) -> str:
    """Run a command and return its standard output, raising DeviceError on failure."""
    try:
        completed = subprocess.run(
            args, capture_output=True, text=True, errors="replace", check=True
        )
    except (OSError, subprocess.CalledProcessError) as err:
        raise DeviceError(str(err)) from err
    return completed.stdout or ""


def _text(output: str | bytes) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def extract_disk_id(line: str) -> str:
    """Return the diskN identifier in a diskutil line, or "" if there is none."""
    match = DISK_ID_REGEX.search(line)
    return match.group(1) if match else ""


def parse_mac_disk_info(output: str | bytes) -> DriveInfo:
    """Build a DriveInfo from the text of ``diskutil info``."""
    info = DriveInfo()
    for raw in _text(output).split("\n"):
        line = raw.strip()
        if "Device / Media Name:" in line:
            info.type = line.partition(":")[2].strip()
        elif "File System Personality:" in line:
            info.filesystem = line.partition(":")[2].strip()
        elif "Disk Size:" in line:
            info.size_gb = parse_size_to_gb(line.partition(":")[2].strip())
        elif "Volume Name:" in line:
            info.label = line.partition(":")[2].strip()
        elif "Internal:" in line and "Yes" in line:
            info.is_system = True
    return info


def bytes_to_gb(value: str) -> float:
    """Convert a byte count written as text to gigabytes; bad input gives 0."""
    value = value.strip()
    if not value:
        return 0.0
    try:
        return float(value) / _GIB
    except ValueError:
        return 0.0


def drive_type_label(code: str) -> str:
    """Return a short name for a WMI drive-type code."""
    return _DRIVE_TYPE_LABELS.get(code, "Unknown")


def parse_windows_drive_csv(output: str) -> list[DriveInfo]:
    """Return the removable drives with a known size from wmic CSV output."""
    drives = []
    for raw in output.split("\n"):
        line = raw.strip()
        if not line or line.startswith("Node,"):
            continue
        parts = line.split(",")
        if len(parts) < 6:
            continue
        drive_type = parts[2].strip()
        if drive_type != "2":
            continue
        size_gb = bytes_to_gb(parts[5])
        if size_gb <= 0:
            continue
        drives.append(
            DriveInfo(
                device=parts[1].strip(),
                label=parts[6].strip() if len(parts) > 6 else "",
                filesystem=parts[3].strip(),
                size_gb=size_gb,
                free_gb=bytes_to_gb(parts[4]),
                type=drive_type_label(drive_type),
            )
        )
    return drives


def list_drives(system: str | None = None) -> None:
    """Print the drives available on this system."""
    system = system if system is not None else current_platform()
    print("Available drives:")
    print()
    if system == "darwin":
        list_mac_drives()
    elif system == "windows":
        list_windows_drives()
    else:
        raise DeviceError(f"Unsupported operating system: {system}")


def _show_mac_drive_details(disk_id: str) -> None:
    try:
        output = _command_output(["diskutil", "info", disk_id])
    except DeviceError:
        return
    info = parse_mac_disk_info(output)
    if not info.type:
        return
    warning = " [SYSTEM]" if info.is_system else ""
    print(
        f"{info.type:<20s} {disk_id:<10s} {info.filesystem:<10s} "
        f"{info.size_gb:8.1f} GB{warning}"
    )


def list_mac_drives() -> None:
    """Print diskutil's overview followed by details of external disks."""
    try:
        basic = _command_output(["diskutil", "list"])
    except DeviceError:
        basic = ""
    print(basic)

    print()
    title = "Detailed drive information:"
    print(title)
    print("-" * len(title))

    try:
        external = _command_output(["diskutil", "list", "external", "physical"])
    except DeviceError:
        external = None
    if external is not None:
        for line in external.split("\n"):
            if "/dev/disk" in line:
                disk_id = extract_disk_id(line)
                if disk_id:
                    _show_mac_drive_details(disk_id)

    print("\nTo format a drive, use: cdjf format diskX")


def list_windows_drives() -> list[DriveInfo]:
    """Print the removable drives reported by wmic and return them."""
    try:
        output = _command_output(
            [
                "wmic",
                "logicaldisk",
                "get",
                "DeviceID,DriveType,FileSystem,FreeSpace,Size,VolumeName",
                "/format:csv",
            ]
        )
    except DeviceError as err:
        print(f"Error listing drives: {err}", file=sys.stderr)
        return []

    drives = parse_windows_drive_csv(output)
    for drive in drives:
        print(
            f"{drive.type:<12s} {drive.device:<6s} {drive.filesystem:<10s} "
            f"{drive.size_gb:9.1f}GB {drive.free_gb:9.1f}GB   {drive.label:<20s}"
        )
        if drive.size_gb > 1024:
            print(
                "    WARNING: Drive over 1TB - may not perform well on Pioneer hardware"
            )

    if not drives:
        print("No removable drives found...")

    print()
    print("To format a drive, use: cdjf format X:")
    print("For multiple drives: cdjf format F: G: H:")
    return drives