import io
import subprocess
from unittest import mock

import pytest

from cdjformat.device import DeviceError
from cdjformat.formatting import (
    format_drive,
    format_single_drive,
    format_windows,
    get_existing_labels,
    get_unique_label,
    mac_format_output_handler,
    parse_windows_labels,
    print_progress_message,
    stream_command_output,
    windows_format_output_handler,
)
from cdjformat.profile import ProfileError
from cdjformat.progress import ProgressBar

WMIC_LABELS = "Name  VolumeName\nC:    SYSTEM\nE:    REKORDBOX\nF:    REKORDBOX2\nG:\n"


def _completed(stdout):
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


class _FakeProcess:
    def __init__(self, out, err=b"", code=0):
        self.stdout = io.BytesIO(out)
        self.stderr = io.BytesIO(err)
        self._code = code

    def wait(self):
        return self._code


def _bar():
    return ProgressBar("Format", 100, stream=io.StringIO())


def test_stream_command_output_splits_on_cr_and_lf():
    lines = []
    stream_command_output(io.BytesIO(b"one\r\ntwo\n  three  \n\n\rlast"), lines.append)
    assert lines == ["one", "two", "three", "last"]


def test_stream_command_output_accepts_text_streams():
    lines = []
    stream_command_output(io.StringIO("a\rb\n"), lines.append)
    assert lines == ["a", "b"]


def test_print_progress_message_clears_line(capsys):
    print_progress_message("hello")
    out = capsys.readouterr().out
    assert out == "\r" + " " * 80 + "\rhello\n"


def test_print_progress_message_ignores_empty(capsys):
    print_progress_message("")
    assert capsys.readouterr().out == ""


def test_mac_handler_only_moves_forward(capsys):
    bar = _bar()
    handle = mac_format_output_handler(bar)
    handle("Started erase on disk4")
    assert bar.current == 5
    handle("Unmounting disk")
    assert bar.current == 15
    handle("Started erase on disk4")
    assert bar.current == 15
    handle("Finished erase on disk4")
    assert bar.current == 100
    assert "Unmounting disk" in capsys.readouterr().out


def test_windows_handler_percent_and_complete(capsys):
    bar = _bar()
    handle = windows_format_output_handler(bar)
    handle("40 percent completed.")
    assert bar.current == 40
    assert capsys.readouterr().out == ""
    handle("Format complete.")
    assert bar.current == 100
    handle("Volume label is set")
    assert "Volume label is set" in capsys.readouterr().out


def test_parse_windows_labels():
    assert parse_windows_labels(WMIC_LABELS) == {"SYSTEM", "REKORDBOX", "REKORDBOX2"}


def test_parse_windows_labels_excludes_device():
    assert parse_windows_labels(WMIC_LABELS, "E:") == {"SYSTEM", "REKORDBOX2"}


def test_existing_labels_empty_on_mac():
    assert get_existing_labels("disk2", "darwin") == set()


def test_unique_label_unchanged_when_free():
    assert get_unique_label("REKORDBOX", "disk2", "darwin") == "REKORDBOX"


@mock.patch("subprocess.run")
def test_unique_label_adds_number(run, capsys):
    run.return_value = _completed(WMIC_LABELS)
    assert get_unique_label("rekordbox", "G:", "windows") == "rekordbox3"
    assert "already exists" in capsys.readouterr().out


@mock.patch("subprocess.run")
def test_unique_label_ignores_own_device(run):
    run.return_value = _completed(WMIC_LABELS)
    assert get_unique_label("REKORDBOX", "E:", "windows") == "REKORDBOX"


def test_format_drive_rejects_bad_cluster_size():
    with pytest.raises(ProfileError):
        format_drive(["disk2"], yes=True, cluster_size="3K", system="darwin")


def test_format_drive_rejects_bad_device():
    with pytest.raises(DeviceError):
        format_drive(["E:"], yes=True, system="darwin")


def test_format_drive_missing_profile(tmp_path, monkeypatch):
    for variable in ("HOME", "XDG_CONFIG_HOME", "APPDATA", "USERPROFILE"):
        monkeypatch.setenv(variable, str(tmp_path))
    with pytest.raises(ProfileError, match="not found"):
        format_drive(["disk2"], yes=True, profile_name="missing", system="darwin")


def test_format_single_drive_refuses_unknown_platform():
    with pytest.raises(DeviceError, match="Refusing to format"):
        format_single_drive("sdb", "REKORDBOX", "", "linux")


@mock.patch("subprocess.Popen")
@mock.patch("subprocess.run")
def test_format_windows_builds_command(run, popen, capsys):
    run.return_value = _completed("DriveType\n2\n")
    popen.return_value = _FakeProcess(b"50 percent completed\r\nFormat complete.\n")
    result = format_windows("E:", "REKORDBOX", "32K")
    assert result is None
    args = popen.call_args[0][0]
    assert args == ["format", "E:", "/FS:FAT32", "/V:REKORDBOX", "/Q", "/Y", "/A:32K"]
    out = capsys.readouterr().out
    assert "Creating FAT32 filesystem..." in out
    assert "100.00%" in out


@mock.patch("subprocess.Popen")
@mock.patch("subprocess.run")
def test_format_windows_reports_failure(run, popen):
    run.return_value = _completed("DriveType\n2\n")
    popen.return_value = _FakeProcess(b"", b"Access denied\n", code=1)
    with pytest.raises(DeviceError, match="format command failed"):
        format_windows("E:", "REKORDBOX", "")


@mock.patch("subprocess.run")
def test_format_windows_refuses_fixed_drive(run):
    run.return_value = _completed("DriveType\n3\n")
    with pytest.raises(DeviceError, match="system/internal"):
        format_windows("D:", "REKORDBOX", "")