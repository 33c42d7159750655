import subprocess

import pytest

from cdjformat.verify import verify_drives


def _fake_diskutil(mount_point):
    text = (
        "   Device Identifier:        disk9\n"
        f"   Mount Point:              {mount_point}\n"
        "   Removable Media:          Removable\n"
        "   Ejectable:                Yes\n"
        "   Internal:                 No\n"
    )

    def fake_run(args, **kwargs):
        assert args[0] == "diskutil"
        return subprocess.CompletedProcess(args, 0, stdout=text, stderr="")

    return fake_run


@pytest.mark.parametrize("size", [0, -5])
def test_rejects_non_positive_size(size):
    with pytest.raises(ValueError, match="greater than zero"):
        verify_drives(["E:"], size, "windows")


def test_invalid_device_format_fails(capsys):
    assert verify_drives(["E:"], 1, "darwin") is False
    err = capsys.readouterr().err
    assert "[E:] Error: invalid device format. Expected diskN (e.g., disk2)" in err


def test_non_removable_device_fails(capsys):
    assert verify_drives(["sdb"], 1, "plan9") is False
    err = capsys.readouterr().err
    assert "is not detected as a removable USB drive" in err


def test_successful_verification(tmp_path, monkeypatch, capsys):
    volume = tmp_path / "volume"
    volume.mkdir()
    logs = tmp_path / "logs"
    logs.mkdir()
    monkeypatch.chdir(logs)
    monkeypatch.setattr(subprocess, "run", _fake_diskutil(str(volume)))

    assert verify_drives(["disk9"], 1, "darwin") is True

    out = capsys.readouterr().out
    assert f"[disk9] Mount point: {volume}" in out
    assert "[disk9] Integrity check PASSED" in out
    assert list(volume.iterdir()) == []

    log_files = list(logs.glob("cdjf-verify-disk9-*.log"))
    assert len(log_files) == 1
    text = log_files[0].read_text(encoding="utf-8")
    assert "Status: PASS - No integrity issues detected." in text


def test_one_failure_fails_whole_run(tmp_path, monkeypatch):
    volume = tmp_path / "volume"
    volume.mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(subprocess, "run", _fake_diskutil(str(volume)))

    assert verify_drives(["disk9", "E:"], 1, "darwin") is False