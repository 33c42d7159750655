"""Reusable formatting profiles stored as JSON in the user's config directory."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any

from .benchmark import DEFAULT_BENCHMARK_THRESHOLDS, BenchmarkThresholds
from .device import current_platform

_CLUSTER_SIZES = {
    "512": "512",
    "1K": "1K",
    "1024": "1K",
    "2K": "2K",
    "2048": "2K",
    "4K": "4K",
    "4096": "4K",
    "8K": "8K",
    "8192": "8K",
    "16K": "16K",
    "16384": "16K",
    "32K": "32K",
    "32768": "32K",
    "64K": "64K",
    "65536": "64K",
}

_THRESHOLD_FIELDS = ("extremely_slow", "very_slow", "slightly_slow", "prompt")


class ProfileError(ValueError):
    """Raised when a profile cannot be loaded, validated or saved."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _thresholds_to_dict(thresholds: BenchmarkThresholds) -> dict[str, float]:
    return {
        name: getattr(thresholds, name)
        for name in _THRESHOLD_FIELDS
        if getattr(thresholds, name)
    }


def _thresholds_from_dict(data: Any) -> BenchmarkThresholds:
    if not isinstance(data, dict):
        raise ProfileError("benchmark_thresholds must be an object")
    values = {}
    for name in _THRESHOLD_FIELDS:
        raw = data.get(name, 0)
        if raw is None:
            raw = 0
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ProfileError(f"benchmark threshold {name} must be a number")
        values[name] = float(raw)
    return BenchmarkThresholds(**values)


@dataclass
class Profile:
    """Saved formatting settings; empty fields fall back to the defaults."""

    name: str = ""
    label: str = ""
    cluster_size: str = ""
    benchmark_thresholds: BenchmarkThresholds | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty fields."""
        data: dict[str, Any] = {}
        if self.name:
            data["name"] = self.name
        if self.label:
            data["label"] = self.label
        if self.cluster_size:
            data["cluster_size"] = self.cluster_size
        if self.benchmark_thresholds is not None:
            data["benchmark_thresholds"] = _thresholds_to_dict(self.benchmark_thresholds)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        """Build a profile from its JSON form."""
        if not isinstance(data, dict):
            raise ProfileError("profile must be an object")
        values: dict[str, Any] = {}
        for key in ("name", "label", "cluster_size"):
            raw = data.get(key)
            if raw is None:
                raw = ""
            if not isinstance(raw, str):
                raise ProfileError(f"profile field {key} must be a string")
            values[key] = raw
        raw_thresholds = data.get("benchmark_thresholds")
        thresholds = (
            None if raw_thresholds is None else _thresholds_from_dict(raw_thresholds)
        )
        return cls(benchmark_thresholds=thresholds, **values)


@dataclass
class ProfileStore:
    """All saved profiles, keyed by lower-cased name."""

    profiles: dict[str, Profile] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialise the store as indented JSON."""
        payload = {
            "profiles": {
                key: self.profiles[key].to_dict() for key in sorted(self.profiles)
            }
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> ProfileStore:
        """Parse a store from JSON text."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as err:
            raise ProfileError(f"invalid profile store: {err}") from err
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ProfileError("invalid profile store: expected an object")
        raw_profiles = data.get("profiles")
        if raw_profiles is None:
            return cls()
        if not isinstance(raw_profiles, dict):
            raise ProfileError("invalid profile store: profiles must be an object")
        return cls(
            profiles={
                key: Profile.from_dict(value if value is not None else {})
                for key, value in raw_profiles.items()
            }
        )


def profile_display_name(profile: Profile, fallback: str) -> str:
    """Return the profile's own name, or ``fallback`` when it has none."""
    name = profile.name.strip()
    return name if name else fallback.strip()


def profile_map_key(name: str) -> str:
    """Return the key under which a profile name is stored."""
    trimmed = name.strip()
    if not trimmed:
        raise ProfileError("profile name cannot be empty")
    return trimmed.lower()


def merged_benchmark_thresholds(
    custom: BenchmarkThresholds | None,
) -> BenchmarkThresholds:
    """Overlay the positive values of ``custom`` on the default thresholds."""
    if custom is None:
        return DEFAULT_BENCHMARK_THRESHOLDS
    overrides = {
        name: getattr(custom, name)
        for name in _THRESHOLD_FIELDS
        if getattr(custom, name) > 0
    }
    return replace(DEFAULT_BENCHMARK_THRESHOLDS, **overrides)


def validate_benchmark_thresholds(thresholds: BenchmarkThresholds) -> None:
    """Check that thresholds are positive and in ascending order."""
    if (
        thresholds.extremely_slow <= 0
        or thresholds.very_slow <= 0
        or thresholds.slightly_slow <= 0
    ):
        raise ProfileError("benchmark thresholds must be greater than zero")
    if thresholds.extremely_slow > thresholds.very_slow:
        raise ProfileError(
            "extremely slow threshold must be less than or equal to very slow threshold"
        )
    if thresholds.very_slow > thresholds.slightly_slow:
        raise ProfileError(
            "very slow threshold must be less than or equal to slightly slow threshold"
        )
    if thresholds.prompt <= 0:
        raise ProfileError("prompt threshold must be greater than zero")


def normalize_cluster_size(value: str) -> str:
    """Return the canonical spelling of a cluster size, or "" for none."""
    trimmed = value.strip()
    if not trimmed:
        return ""
    key = trimmed.upper().removesuffix("B")
    try:
        return _CLUSTER_SIZES[key]
    except KeyError:
        raise ProfileError(
            f"invalid cluster size {_quote(value)}; supported values: "
            "512, 1K, 2K, 4K, 8K, 16K, 32K, 64K"
        ) from None


def _user_config_dir() -> str:
    system = current_platform()
    if system == "windows":
        directory = os.environ.get("APPDATA", "")
        if not directory:
            raise OSError("%AppData% is not defined")
        return directory
    if system == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        return os.path.join(home, "Library", "Application Support")
    directory = os.environ.get("XDG_CONFIG_HOME", "")
    if directory:
        if not os.path.isabs(directory):
            raise OSError("path in $XDG_CONFIG_HOME is relative")
        return directory
    home = os.environ.get("HOME", "")
    if not home:
        raise OSError("neither $XDG_CONFIG_HOME nor $HOME are defined")
    return os.path.join(home, ".config")


def _user_home_dir() -> str:
    variable = "USERPROFILE" if current_platform() == "windows" else "HOME"
    home = os.environ.get(variable, "")
    if not home:
        raise OSError(f"${variable} is not defined")
    return home


def profile_config_path() -> str:
    """Return the path of the profile store file."""
    try:
        config_dir = os.path.join(_user_config_dir(), "cdjf")
    except OSError as config_err:
        try:
            config_dir = os.path.join(_user_home_dir(), ".cdjf")
        except OSError:
            raise ProfileError(
                f"unable to resolve config directory: {config_err}"
            ) from config_err
    return os.path.join(config_dir, "profiles.json")


def _resolve(path: str | None) -> str:
    return path if path is not None else profile_config_path()


def load_profile_store(path: str | None = None) -> ProfileStore:
    """Read the store; a missing file gives an empty store."""
    path = _resolve(path)
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except FileNotFoundError:
        return ProfileStore()
    return ProfileStore.from_json(text)


def save_profile_store(store: ProfileStore, path: str | None = None) -> None:
    """Write the store, creating its directory when needed."""
    path = _resolve(path)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, mode=0o755, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(store.to_json())


def load_profile_by_name(name: str, path: str | None = None) -> Profile:
    """Return the saved profile called ``name`` (case-insensitive)."""
    key = profile_map_key(name)
    store = load_profile_store(path)
    profile = store.profiles.get(key)
    if profile is None:
        raise ProfileError(f"profile {_quote(name.strip())} not found")
    if not profile.name.strip():
        profile = replace(profile, name=name.strip())
    return profile


def _positive(flag: str, value: float) -> float:
    if value <= 0:
        raise ProfileError(f"--{flag} must be greater than zero.")
    return value


def profile_save(
    name: str,
    label: str | None = None,
    cluster_size: str | None = None,
    extremely_slow: float | None = None,
    very_slow: float | None = None,
    slightly_slow: float | None = None,
    prompt: float | None = None,
    reset_benchmarks: bool = False,
    path: str | None = None,
) -> Profile | None:
    """Create or update a profile with the options that were given.

    Options left as None are not changed. Returns the saved profile, or
    None when nothing changed.
    """
    key = profile_map_key(name)
    store = load_profile_store(path)
    profile = replace(store.profiles.get(key, Profile()), name=name.strip())

    threshold_values = {
        "extremely_slow": extremely_slow,
        "very_slow": very_slow,
        "slightly_slow": slightly_slow,
        "prompt": prompt,
    }
    thresholds_given = any(v is not None for v in threshold_values.values())

    if label is None and cluster_size is None and not thresholds_given and not reset_benchmarks:
        raise ProfileError(
            "Specify at least one option to save "
            "(e.g. --label, --cluster-size, or a threshold flag)."
        )

    changed = False

    if label is not None:
        profile.label = label
        changed = True

    if cluster_size is not None:
        try:
            profile.cluster_size = normalize_cluster_size(cluster_size)
        except ProfileError as err:
            raise ProfileError(f"Invalid cluster size: {err}") from err
        changed = True

    if reset_benchmarks:
        if thresholds_given:
            raise ProfileError(
                "Cannot adjust benchmark thresholds while --reset-benchmarks is provided."
            )
        if profile.benchmark_thresholds is not None:
            profile.benchmark_thresholds = None
            changed = True
    elif thresholds_given:
        overrides = {
            field_name: _positive(field_name.replace("_", "-"), value)
            for field_name, value in threshold_values.items()
            if value is not None
        }
        thresholds = replace(
            merged_benchmark_thresholds(profile.benchmark_thresholds), **overrides
        )
        try:
            validate_benchmark_thresholds(thresholds)
        except ProfileError as err:
            raise ProfileError(f"Invalid benchmark thresholds: {err}") from err
        profile.benchmark_thresholds = thresholds
        changed = True

    if not changed:
        print("No changes to save.")
        return None

    store.profiles[key] = profile
    save_profile_store(store, path)
    print(f"Profile {_quote(profile_display_name(profile, name))} saved.")
    return profile


def profile_list(path: str | None = None) -> list[str]:
    """Print and return the sorted names of all saved profiles."""
    store = load_profile_store(path)
    if not store.profiles:
        print("No profiles saved yet.")
        return []
    names = sorted(
        profile_display_name(profile, key) for key, profile in store.profiles.items()
    )
    print("Saved profiles:")
    for entry in names:
        print(f"  {entry}")
    return names


def profile_show(name: str, path: str | None = None) -> Profile:
    """Print the details of a saved profile and return it."""
    profile = load_profile_by_name(name, path)
    print(f"Profile {_quote(profile_display_name(profile, name))}")

    if profile.label.strip():
        print(f"Label: {profile.label}")
    else:
        print("Label: (default)")

    if profile.cluster_size.strip():
        print(f"Cluster size: {profile.cluster_size}")
    else:
        print("Cluster size: (default)")

    thresholds = merged_benchmark_thresholds(profile.benchmark_thresholds)
    if profile.benchmark_thresholds is None:
        print("Benchmark thresholds: default")
    else:
        print("Benchmark thresholds:")
    print(f"  Extremely slow: {thresholds.extremely_slow:.2f} MB/s")
    print(f"  Very slow: {thresholds.very_slow:.2f} MB/s")
    print(f"  Slightly slow: {thresholds.slightly_slow:.2f} MB/s")
    print(f"  Prompt: {thresholds.prompt:.2f} MB/s")
    return profile


def profile_delete(name: str, path: str | None = None) -> Profile:
    """Delete a saved profile and return what was removed."""
    key = profile_map_key(name)
    store = load_profile_store(path)
    profile = store.profiles.pop(key, None)
    if profile is None:
        raise ProfileError(f"Profile {_quote(name.strip())} not found.")
    save_profile_store(store, path)
    print(f"Profile {_quote(profile_display_name(profile, name))} deleted.")
    return profile