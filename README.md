# cdjformat

A command line tool that prepares USB drives for standalone DJ players used
with rekordbox. It formats drives to FAT32 with settings that suit rekordbox.
It can also check drive speed, verify data integrity and eject drives safely.
It works on macOS through `diskutil`. On Windows it uses `wmic`, `format` and
PowerShell.

**Formatting erases all data on the selected drive(s).** The tool refuses
system and internal drives. It accepts only drives that are detected as
removable.

## Installation

```
pip install .
```

This installs the `cdjf` command. It needs no packages beyond the standard
library.

## Usage

```
cdjf --help
cdjf --version
```

### List drives

```
cdjf list
```

On macOS this prints the output of `diskutil list`, followed by one line for
each external physical disk. On Windows it shows the removable drives with
their size, free space and label. Drives over 1 TB are flagged.

### Format

```
cdjf format disk2            # macOS
cdjf format E:               # Windows
cdjf format F: G: H:         # Windows, several drives concurrently
```

Options:

- `-y`, `--yes`: skip the pre-format benchmark and the confirmation prompt
- `-l`, `--label`: volume label (default `REKORDBOX`)
- `--cluster-size`: cluster size: `512`, `1K`, `2K`, `4K`, `8K`, `16K`,
  `32K` or `64K`. Byte counts such as `32768` are accepted as well. It is used
  on Windows only. On macOS a note is printed and the default size is used.
- `--profile`: apply settings from a saved profile

If you give no device, the tool lists the available drives and asks which
ones to format. When there is one drive and `--yes` is not given, it is
benchmarked first. If its write speed is below the prompt threshold, you are
asked whether to go on. After formatting, you are asked whether to eject the
drive(s).

When several drives are formatted together, the first drive gets the label
itself. The others get the label with their position appended: `REKORDBOX2`,
`REKORDBOX3` and so on. On Windows, a label that another drive already uses
has a number from 2 to 99 added to it.

### Information

```
cdjf info disk2
cdjf info E:
```

Prints the drive's details, then runs a write/read benchmark. The benchmark
writes a temporary file of 32 to 256 MB to the drive's mount point.

### Verify

```
cdjf verify E:
cdjf verify F: G: --size 128
```

Writes a test pattern of `--size` MB (default 64) to each drive, reads it
back and compares it. A report named `cdjf-verify-<device>-<timestamp>.log`
is written to the current directory. The command exits with status 1 if any
drive fails.

### Eject

```
cdjf eject disk2
cdjf eject E:
```

## Profiles

A profile stores a default label, a cluster size and the benchmark thresholds
in MB/s. Profiles are kept in `cdjf/profiles.json` in your user configuration
directory. If that directory cannot be found, `~/.cdjf/profiles.json` is used.
Profile names are matched without regard to case.

```
cdjf profile save club --label CLUB --cluster-size 32K
cdjf profile save club --prompt 8 --slightly-slow 10
cdjf profile save club --reset-benchmarks
cdjf profile list
cdjf profile show club
cdjf profile delete club
cdjf format E: --profile club
```

The threshold options of `profile save` are `--extremely-slow`,
`--very-slow`, `--slightly-slow` and `--prompt`. Each must be greater than
zero. The thresholds must be in order: extremely slow ≤ very slow ≤ slightly
slow. The defaults are 2, 3 and 6 MB/s, and the prompt threshold is 5 MB/s.
You cannot combine `--reset-benchmarks` with a threshold option.

When you format with a profile, `--label` on the command line overrides the
profile's label. `--cluster-size` overrides the profile's cluster size.

## Using it from Python

The functions behind the commands can be called directly. Examples are
`cdjformat.profile.normalize_cluster_size`, `cdjformat.benchmark.run_integrity_check`,
`cdjformat.verify.verify_drives` and `cdjformat.cli.main`. Most of them take an
optional `system` argument (`"darwin"` or `"windows"`). Problems are raised as
`cdjformat.device.DeviceError` or `cdjformat.profile.ProfileError`.

## Limitations

Only macOS and Windows are supported. On other systems, `list` and `format`
report an unsupported operating system, and no drive is detected as
removable.

## Development

```
pip install -e ".[test]"
pytest
```