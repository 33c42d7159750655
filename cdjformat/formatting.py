"""Formatting removable drives as FAT32 for rekordbox."""

from __future__ import annotations

import json
import re
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Callable, TextIO

from .benchmark import benchmark_drive, benchmark_summary
from .device import (
    DeviceError,
    current_platform,
    eject_device,
    ensure_removable_device,
    get_drive_size,
    validate_device,
)
from .listing import list_drives
from .profile import (
    DEFAULT_BENCHMARK_THRESHOLDS,
    ProfileError,
    load_profile_by_name,
    merged_benchmark_thresholds,
    normalize_cluster_size,
    profile_display_name,
)
from .progress import ProgressBar

DEFAULT_LABEL = "REKORDBOX"

_MAC_STEPS = (
    ("started erase", 5),
    ("unmounting", 15),
    ("creating the partition map", 35),
    ("waiting for partitions", 55),
    ("formatting", 75),
    ("initialization complete", 90),
    ("finished", 100),
)

_PERCENT_REGEX = re.compile(r"(?i)(\d{1,3})\s*percent")
_WHITESPACE = re.compile(r"\s+")
_YES = ("y", "yes")


def _ask(prompt: str) -> str:
    """Prompt on stdout and return the lower-cased, trimmed answer."""
    print(prompt, end="", flush=True)
    try:
        return input().strip().lower()
    except EOFError:
        return ""


def _system(system: str | None) -> str:
    return system if system is not None else current_platform()


def format_drive(
    devices=None,
    yes: bool = False,
    label: str = DEFAULT_LABEL,
    label_given: bool = False,
    profile_name: str = "",
    cluster_size: str = "",
    system: str | None = None,
) -> bool:
    """Check, confirm and format one or more drives.

    Returns False when the user cancels, True once formatting has run.
    """
    system = _system(system)
    cluster_size = (cluster_size or "").strip()
    thresholds = DEFAULT_BENCHMARK_THRESHOLDS

    if profile_name:
        try:
            profile = load_profile_by_name(profile_name)
        except (ProfileError, OSError) as err:
            raise ProfileError(
                f"Error loading profile {json.dumps(profile_name)}: {err}"
            ) from err
        print(f"Applying profile {json.dumps(profile_display_name(profile, profile_name))}")
        if profile.benchmark_thresholds is not None:
            thresholds = merged_benchmark_thresholds(profile.benchmark_thresholds)
        if not label_given and profile.label.strip():
            label = profile.label
        if not cluster_size and profile.cluster_size.strip():
            cluster_size = profile.cluster_size

    if cluster_size:
        cluster_size = normalize_cluster_size(cluster_size)

    devices = list(devices or [])
    if not devices:
        print("Available drives:")
        list_drives(system)
        print()
        print(
            "Enter device(s) to format (space-separated for multiple): ",
            end="",
            flush=True,
        )
        try:
            entered = input().strip()
        except EOFError:
            entered = ""
        devices = entered.split()
    if not devices:
        raise DeviceError("No device specified")

    for device in devices:
        try:
            validate_device(device, system)
            ensure_removable_device(device, system)
        except DeviceError as err:
            raise DeviceError(f"with device {device}: {err}") from err
        size = get_drive_size(device, system)
        if size > 1024:
            print(f"  WARNING: Drive {device} is {size:.1f} GB (over 1TB)")
            print("   Large drives may not perform well on Pioneer CDJ/XDJ hardware.")

    if not yes and len(devices) == 1:
        print(f"\nBenchmarking {devices[0]} to check performance...")
        result = benchmark_drive(devices[0], system)
        print(benchmark_summary(result, thresholds))
        if 0 < thresholds.prompt and 0 < result.write_mbps < thresholds.prompt:
            if _ask("   Do you want to proceed anyway? (Y/n): ") not in _YES:
                print("Format cancelled.")
                return False

    if not yes:
        print()
        print("! WARNING !")
        if len(devices) == 1:
            print(f"This will ERASE ALL DATA on {devices[0]}")
        else:
            print(f"This will ERASE ALL DATA on {len(devices)} drives: {', '.join(devices)}")
        print()
        if _ask("Are you sure you want to continue? (Y/n): ") not in _YES:
            print("Format cancelled.")
            return False

    if len(devices) == 1:
        format_single_drive(devices[0], label, cluster_size, system)
    else:
        print(f"\nFormatting {len(devices)} drives concurrently...\n")
        format_multiple_drives(devices, label, cluster_size, system)
    return True


def _format_for(system: str, device: str, label: str, cluster_size: str) -> None:
    if system == "darwin":
        format_mac(device, label, cluster_size)
    elif system == "windows":
        format_windows(device, label, cluster_size)
    else:
        raise DeviceError(f"Unsupported operating system: {system}")


def format_single_drive(
    device: str, label: str, cluster_size: str = "", system: str | None = None
) -> None:
    """Format one drive, offer to eject it and print the next steps."""
    system = _system(system)
    try:
        ensure_removable_device(device, system)
    except DeviceError as err:
        raise DeviceError(f"Refusing to format {device}: {err}") from err
    label = get_unique_label(label, device, system)

    print(f"\nFormatting {device} to FAT32...")
    try:
        _format_for(system, device, label, cluster_size)
    except DeviceError as err:
        raise DeviceError(f"Error formatting drive: {err}") from err

    print()
    print("Format completed successfully!")
    print()
    if _ask("Do you want to eject the newly formatted drive? (Y/n): ") in ("", *_YES):
        try:
            eject_device(device, system)
        except DeviceError as err:
            print(f"Error ejecting drive: {err}")
        else:
            print("Drive ejected successfully!")

    print()
    print("Your USB drive is now ready for rekordbox.")
    print("You can now:")
    print("  1. Connect the drive to your computer with rekordbox installed")
    print("  2. Open rekordbox and add your music to the drive")
    print("  3. Safely eject the drive and use it on CDJ/XDJ players")
    print(
        f"  4. (Recommended) Run 'cdjf verify {device}' to confirm the drive's "
        "health before loading music."
    )


def format_multiple_drives(
    devices, base_label: str, cluster_size: str = "", system: str | None = None
) -> list[str]:
    """Format several drives at once and return one result line per drive."""
    system = _system(system)
    devices = list(devices)

    def work(index: int, device: str) -> str:
        label = base_label if index == 0 else f"{base_label}{index + 1}"
        label = get_unique_label(label, device, system)
        print(f"[{device}] Starting format...")
        try:
            ensure_removable_device(device, system)
            _format_for(system, device, label, cluster_size)
        except DeviceError as err:
            return f"[{device}] FAILED: {err}"
        return f"[{device}] SUCCESS"

    with ThreadPoolExecutor(max_workers=max(1, len(devices))) as pool:
        results = list(pool.map(work, range(len(devices)), devices))

    print("\n=== Format Results ===")
    for line in results:
        print(line)

    print()
    if _ask("Do you want to eject all newly formatted drives? (Y/n): ") in ("", *_YES):
        for device in devices:
            try:
                eject_device(device, system)
            except DeviceError as err:
                print(f"[{device}] Error ejecting: {err}")
            else:
                print(f"[{device}] Ejected successfully")

    print()
    print("All drives are now ready for rekordbox.")
    print(
        "For extra peace of mind, run 'cdjf verify <drive>' on each drive "
        "before loading music."
    )
    return results


def parse_windows_labels(output: str, exclude_device: str = "") -> set[str]:
    """Return the upper-cased volume labels in ``wmic`` name/volumename output."""
    labels: set[str] = set()
    for raw in output.split("\n")[1:]:
        line = raw.strip()
        if not line:
            continue
        parts = _WHITESPACE.split(line, maxsplit=1)
        if len(parts) < 2:
            continue
        letter = parts[0].removesuffix(":")
        volume_name = parts[1].strip()
        if exclude_device and exclude_device.startswith(letter):
            continue
        if volume_name:
            labels.add(volume_name.upper())
    return labels


def get_existing_labels(exclude_device: str = "", system: str | None = None) -> set[str]:
    """Return the volume labels already in use, except the given device's."""
    if _system(system) != "windows":
        return set()
    try:
        completed = subprocess.run(
            ["wmic", "logicaldisk", "get", "name,volumename"],
            capture_output=True,
            text=True,
            errors="replace",
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return set()
    return parse_windows_labels(completed.stdout or "", exclude_device)


def get_unique_label(base_label: str, device: str, system: str | None = None) -> str:
    """Return ``base_label``, or it with a number 2-99 appended if already taken."""
    existing = get_existing_labels(device, system)
    if base_label.upper() not in existing:
        return base_label
    for number in range(2, 100):
        candidate = f"{base_label}{number}"
        if candidate.upper() not in existing:
            print(f"Label '{base_label}' already exists, using '{candidate}' instead")
            return candidate
    return base_label


def _run_with_progress(
    args: list[str],
    name: str,
    handler_factory: Callable[[ProgressBar], Callable[[str], None]],
) -> None:
    try:
        process = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as err:
        raise DeviceError(f"{name} failed to start: {err}") from err

    with ProgressBar("Format", 100) as progress:
        errors: list[Exception] = []
        lock = threading.Lock()

        def pump(stream, handle: Callable[[str], None]) -> None:
            try:
                stream_command_output(stream, handle)
            except (OSError, ValueError) as err:
                with lock:
                    errors.append(err)

        threads = [
            threading.Thread(target=pump, args=(process.stdout, handler_factory(progress))),
            threading.Thread(target=pump, args=(process.stderr, print_progress_message)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        code = process.wait()

        if errors:
            raise DeviceError(f"{name} output error: {errors[0]}")
        if code != 0:
            raise DeviceError(f"{name} failed: exit status {code}")
        progress.finish()


def format_mac(device: str, label: str, cluster_size: str = "") -> None:
    """Erase a macOS disk as FAT32 with an MBR partition map."""
    ensure_removable_device(device, "darwin")
    if cluster_size:
        print("Note: custom cluster size is not currently supported on macOS; using default size.")
    print("Unmounting device...")
    try:
        completed = subprocess.run(
            ["diskutil", "unmountDisk", device],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as err:
        raise DeviceError(f"failed to unmount: {err}\nOutput: ") from err
    if completed.returncode != 0:
        raise DeviceError(
            f"failed to unmount: exit status {completed.returncode}\n"
            f"Output: {completed.stdout or ''}"
        )

    print("Creating FAT32 filesystem...")
    _run_with_progress(
        ["diskutil", "eraseDisk", "FAT32", label, "MBR", device],
        "diskutil",
        mac_format_output_handler,
    )


def format_windows(device: str, label: str, cluster_size: str = "") -> None:
    """Quick-format a Windows drive letter as FAT32."""
    ensure_removable_device(device, "windows")
    letter = device.removesuffix(":")
    print("Creating FAT32 filesystem...")
    args = ["format", f"{letter}:", "/FS:FAT32", f"/V:{label}", "/Q", "/Y"]
    if cluster_size:
        args.append(f"/A:{cluster_size}")
    _run_with_progress(args, "format command", windows_format_output_handler)


def stream_command_output(stream: BinaryIO | TextIO, handle: Callable[[str], None]) -> None:
    """Call ``handle`` with each non-blank line of ``stream``.

    Both carriage returns and newlines end a line, so progress updates
    that rewrite a single console line are seen one by one.
    """
    buffer = bytearray()

    def flush() -> None:
        if not buffer:
            return
        line = buffer.decode("utf-8", errors="replace").strip()
        buffer.clear()
        if line:
            handle(line)

    read = getattr(stream, "read1", None) or stream.read
    try:
        while True:
            chunk = read(4096)
            if not chunk:
                break
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            for byte in chunk:
                if byte in (0x0A, 0x0D):
                    flush()
                else:
                    buffer.append(byte)
    finally:
        flush()


def print_progress_message(line: str) -> None:
    """Print ``line`` on its own, clearing any progress bar drawn before it."""
    if not line:
        return
    width = max(len(line) + 32, 80)
    print(f"\r{' ' * width}\r{line}", flush=True)


def mac_format_output_handler(progress: ProgressBar) -> Callable[[str], None]:
    """Return a handler that maps diskutil's messages onto the progress bar."""
    last = 0

    def handle(line: str) -> None:
        nonlocal last
        lower = line.lower()
        for pattern, value in _MAC_STEPS:
            if pattern in lower:
                if value > last:
                    progress.set(value)
                    last = value
                break
        print_progress_message(line)

    return handle


def windows_format_output_handler(progress: ProgressBar) -> Callable[[str], None]:
    """Return a handler that follows the percentage reported by format."""
    last = 0

    def handle(line: str) -> None:
        nonlocal last
        match = _PERCENT_REGEX.search(line)
        if match is not None:
            value = int(match.group(1))
            last = max(last, value)
            progress.set(value)
            return
        if "format complete" in line.lower() and last < 100:
            last = 100
            progress.set(100)
            return
        print_progress_message(line)

    return handle