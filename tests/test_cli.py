import pytest

from cdjformat.cli import build_parser, main


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    for variable in ("XDG_CONFIG_HOME", "HOME", "APPDATA", "USERPROFILE"):
        monkeypatch.setenv(variable, str(tmp_path))
    return tmp_path


def test_version_output(capsys):
    assert main(["--version"]) == 0
    assert "CDJF version 0.1.0" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "format" in out and "verify" in out


def test_parse_format_arguments():
    args = build_parser().parse_args(["format", "E:", "F:", "-y", "--cluster-size", "32K"])
    assert args.devices == ["E:", "F:"]
    assert args.yes is True
    assert args.label is None
    assert args.cluster_size == "32K"


def test_parse_format_label_given():
    args = build_parser().parse_args(["format", "-l", "MYDRIVE", "disk2"])
    assert args.label == "MYDRIVE"
    assert args.devices == ["disk2"]


def test_verify_default_size():
    args = build_parser().parse_args(["verify", "E:"])
    assert args.size == 64
    assert args.devices == ["E:"]


def test_verify_requires_device():
    assert main(["verify"]) == 2


def test_eject_requires_exactly_one_device():
    assert main(["eject"]) == 2
    assert main(["eject", "E:", "F:"]) == 2


def test_verify_rejects_non_positive_size(capsys):
    assert main(["verify", "-s", "0", "E:"]) == 1
    assert "greater than zero" in capsys.readouterr().err


def test_format_rejects_invalid_cluster_size(capsys):
    assert main(["format", "--cluster-size", "3K", "E:"]) == 1
    assert "invalid cluster size" in capsys.readouterr().err


def test_profile_save_requires_an_option(config_home, capsys):
    assert main(["profile", "save", "club"]) == 1
    assert "Specify at least one option" in capsys.readouterr().err


def test_profile_save_reset_conflicts_with_thresholds(config_home, capsys):
    assert main(["profile", "save", "club", "--reset-benchmarks", "--prompt", "4"]) == 1
    assert "--reset-benchmarks" in capsys.readouterr().err


def test_profile_save_rejects_zero_threshold(config_home, capsys):
    assert main(["profile", "save", "club", "--very-slow", "0"]) == 1
    assert "--very-slow must be greater than zero." in capsys.readouterr().err


def test_profile_round_trip(config_home, capsys):
    assert main(["profile", "save", "Club", "--label", "GIGS", "--cluster-size", "32768"]) == 0
    assert 'Profile "Club" saved.' in capsys.readouterr().out

    assert main(["profile", "list"]) == 0
    assert "  Club" in capsys.readouterr().out

    assert main(["profile", "show", "club"]) == 0
    out = capsys.readouterr().out
    assert "Label: GIGS" in out
    assert "Cluster size: 32K" in out
    assert "Benchmark thresholds: default" in out

    assert main(["profile", "delete", "CLUB"]) == 0
    assert 'Profile "Club" deleted.' in capsys.readouterr().out

    assert main(["profile", "show", "club"]) == 1
    assert "not found" in capsys.readouterr().err


def test_profile_list_empty(config_home, capsys):
    assert main(["profile", "list"]) == 0
    assert "No profiles saved yet." in capsys.readouterr().out


def test_profile_thresholds_shown(config_home, capsys):
    assert main(["profile", "save", "fast", "--slightly-slow", "10", "--prompt", "8"]) == 0
    capsys.readouterr()
    assert main(["profile", "show", "fast"]) == 0
    out = capsys.readouterr().out
    assert "Benchmark thresholds:\n" in out
    assert "  Slightly slow: 10.00 MB/s" in out
    assert "  Prompt: 8.00 MB/s" in out


def test_profile_delete_missing(config_home, capsys):
    assert main(["profile", "delete", "ghost"]) == 1
    assert 'Profile "ghost" not found.' in capsys.readouterr().err