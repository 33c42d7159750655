"""Command line interface for preparing USB drives for rekordbox."""

from __future__ import annotations

import argparse
import sys
from typing import Callable

from .device import DeviceError, eject_drive
from .formatting import DEFAULT_LABEL, format_drive
from .info import show_drive_info
from .listing import list_drives
from .profile import (
    ProfileError,
    profile_delete,
    profile_list,
    profile_save,
    profile_show,
)
from .verify import verify_drives

VERSION = "0.1.0"

_DESCRIPTION = """\
CDJF is a command line tool designed to help DJs prepare USB drives
for use on standalone systems with rekordbox.

It formats drives to FAT32 with optimal settings for rekordbox compatibility on macOS and Windows."""

_FORMAT_DESCRIPTION = """\
Format one or more USB drives to FAT32 with settings optimized for rekordbox.

WARNING: This will erase all data on the selected drive(s)!

Examples:
  cdjf format disk2          (macOS - single drive)
  cdjf format E:             (Windows - single drive)
  cdjf format F: G: H:       (Windows - multiple drives)"""

_EJECT_DESCRIPTION = """\
Safely eject a drive from the system.

Examples:
  cdjf eject disk2       (macOS)
  cdjf eject E:          (Windows)"""

_INFO_DESCRIPTION = """\
Display detailed information about a drive including capacity, free space, \
filesystem type, and performance statistics.

Examples:
  cdjf info disk2       (macOS)
  cdjf info E:          (Windows)"""

_VERIFY_DESCRIPTION = """\
Verify the health of one or more drives by writing and reading a test pattern.

Run this after formatting to confirm the drive is ready for loading music.

Examples:
  cdjf verify disk2       (macOS)
  cdjf verify E:          (Windows)
  cdjf verify F: G:       (Windows - multiple drives)"""


def _run_format(args: argparse.Namespace) -> int:
    label_given = args.label is not None
    format_drive(
        args.devices,
        yes=args.yes,
        label=args.label if label_given else DEFAULT_LABEL,
        label_given=label_given,
        profile_name=args.profile or "",
        cluster_size=args.cluster_size or "",
    )
    return 0


def _run_list(args: argparse.Namespace) -> int:
    list_drives()
    return 0


def _run_eject(args: argparse.Namespace) -> int:
    eject_drive(args.device)
    return 0


def _run_info(args: argparse.Namespace) -> int:
    show_drive_info(args.device)
    return 0


def _run_verify(args: argparse.Namespace) -> int:
    return 0 if verify_drives(args.devices, args.size) else 1


def _run_profile_save(args: argparse.Namespace) -> int:
    profile_save(
        args.name,
        label=args.label,
        cluster_size=args.cluster_size,
        extremely_slow=args.extremely_slow,
        very_slow=args.very_slow,
        slightly_slow=args.slightly_slow,
        prompt=args.prompt,
        reset_benchmarks=args.reset_benchmarks,
    )
    return 0


def _run_profile_list(args: argparse.Namespace) -> int:
    profile_list()
    return 0


def _run_profile_show(args: argparse.Namespace) -> int:
    profile_show(args.name)
    return 0


def _run_profile_delete(args: argparse.Namespace) -> int:
    profile_delete(args.name)
    return 0


def _help_for(parser: argparse.ArgumentParser) -> Callable[[argparse.Namespace], int]:
    def show(args: argparse.Namespace) -> int:
        parser.print_help()
        return 0

    return show


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all commands and options."""
    formatter = argparse.RawDescriptionHelpFormatter
    parser = argparse.ArgumentParser(
        prog="CDJF",
        description=_DESCRIPTION,
        formatter_class=formatter,
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s version {VERSION}"
    )
    parser.set_defaults(handler=_help_for(parser))
    commands = parser.add_subparsers(title="commands", metavar="<command>")

    fmt = commands.add_parser(
        "format",
        help="Format a USB drive for rekordbox",
        description=_FORMAT_DESCRIPTION,
        formatter_class=formatter,
    )
    fmt.add_argument("devices", nargs="*", metavar="device")
    fmt.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    fmt.add_argument(
        "-l",
        "--label",
        default=None,
        help=f"Volume label for the drive (default {DEFAULT_LABEL})",
    )
    fmt.add_argument("--profile", default="", help="Apply settings from a saved profile")
    fmt.add_argument(
        "--cluster-size",
        default="",
        help="Cluster size to use when formatting (Windows only, e.g. 32K)",
    )
    fmt.set_defaults(handler=_run_format)

    lst = commands.add_parser(
        "list",
        help="List available drives",
        description="List all available drives that can be formatted for rekordbox.",
    )
    lst.set_defaults(handler=_run_list)

    eject = commands.add_parser(
        "eject",
        help="Eject a drive",
        description=_EJECT_DESCRIPTION,
        formatter_class=formatter,
    )
    eject.add_argument("device")
    eject.set_defaults(handler=_run_eject)

    info = commands.add_parser(
        "info",
        help="Show drive information",
        description=_INFO_DESCRIPTION,
        formatter_class=formatter,
    )
    info.add_argument("device")
    info.set_defaults(handler=_run_info)

    verify = commands.add_parser(
        "verify",
        help="Run read/write integrity checks on a drive",
        description=_VERIFY_DESCRIPTION,
        formatter_class=formatter,
    )
    verify.add_argument("devices", nargs="+", metavar="device")
    verify.add_argument(
        "-s",
        "--size",
        type=int,
        default=64,
        help="Size of the integrity test file in megabytes",
    )
    verify.set_defaults(handler=_run_verify)

    profile = commands.add_parser(
        "profile",
        help="Manage CDJF format profiles",
        description="Create, update, view, and delete reusable formatting profiles.",
    )
    profile.set_defaults(handler=_help_for(profile))
    profile_commands = profile.add_subparsers(title="commands", metavar="<command>")

    save = profile_commands.add_parser("save", help="Create or update a profile")
    save.add_argument("name")
    save.add_argument("--label", default=None, help="Set the default volume label")
    save.add_argument(
        "--cluster-size", default=None, help="Set the cluster size (Windows only, e.g. 32K)"
    )
    save.add_argument(
        "--extremely-slow",
        type=float,
        default=None,
        help="Threshold under which drives are classified as extremely slow (MB/s)",
    )
    save.add_argument(
        "--very-slow",
        type=float,
        default=None,
        help="Threshold under which drives are classified as very slow (MB/s)",
    )
    save.add_argument(
        "--slightly-slow",
        type=float,
        default=None,
        help="Threshold under which drives are classified as slightly slow (MB/s)",
    )
    save.add_argument(
        "--prompt",
        type=float,
        default=None,
        help="Threshold under which the formatter will prompt before continuing (MB/s)",
    )
    save.add_argument(
        "--reset-benchmarks",
        action="store_true",
        help="Reset benchmark thresholds to defaults",
    )
    save.set_defaults(handler=_run_profile_save)

    plist = profile_commands.add_parser("list", help="List saved profiles")
    plist.set_defaults(handler=_run_profile_list)

    show = profile_commands.add_parser("show", help="Show profile details")
    show.add_argument("name")
    show.set_defaults(handler=_run_profile_show)

    delete = profile_commands.add_parser("delete", help="Delete a saved profile")
    delete.add_argument("name")
    delete.set_defaults(handler=_run_profile_delete)

    return parser


def main(argv=None) -> int:
    """Run the command line and return the process exit status."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exit_request:
        code = exit_request.code
        return code if isinstance(code, int) else (0 if code is None else 1)

    try:
        return args.handler(args)
    except (DeviceError, ProfileError, ValueError, OSError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())