"""Execution profiles: named target hosts and their restrictions."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from jitphone.errors import UnknownProfileError

DEFAULT_PROFILES_PATH = Path(__file__).parent / "profiles.yaml"


@dataclass(frozen=True)
class Profile:
    """A target execution environment."""

    name: str
    harness: str
    bridge_api: str = ""
    description: str = ""
    aliases: tuple[str, ...] = ()
    result_envelope: tuple[str, ...] = ()
    disallowed_identifiers: tuple[str, ...] = ()
    missing_features: tuple[str, ...] = ()
    platform_overhead: float = 1.3
    max_payload_size: int = 1024 * 1024
    max_execution_time: float = 30.0
    requirements: dict = field(default_factory=dict, hash=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "aliases": list(self.aliases),
            "description": self.description,
            "harness": self.harness,
            "bridge_api": self.bridge_api,
            "result_envelope": list(self.result_envelope),
            "disallowed_identifiers": list(self.disallowed_identifiers),
            "missing_features": list(self.missing_features),
            "platform_overhead": self.platform_overhead,
            "max_payload_size": self.max_payload_size,
            "max_execution_time": self.max_execution_time,
            "requirements": dict(self.requirements),
        }


class ProfileRegistry:
    """Profiles by name, resolving aliases."""

    def __init__(self, profiles: list[Profile]):
        self._profiles: dict[str, Profile] = {}
        self._aliases: dict[str, str] = {}
        for profile in profiles:
            self._profiles[profile.name] = profile
            for alias in profile.aliases:
                self._aliases[alias] = profile.name

    def get(self, name: str) -> Profile:
        canonical = self._aliases.get(name, name)
        if canonical not in self._profiles:
            raise UnknownProfileError(name, self.names() + sorted(self._aliases))
        return self._profiles[canonical]

    def names(self) -> list[str]:
        return list(self._profiles)

    def all(self) -> list[Profile]:
        return list(self._profiles.values())

    def __contains__(self, name: str) -> bool:
        return self._aliases.get(name, name) in self._profiles


def _profile_from_dict(data: dict) -> Profile:
    return Profile(
        name=data["name"],
        harness=data.get("harness", "automation"),
        bridge_api=data.get("bridge_api", ""),
        description=data.get("description", ""),
        aliases=tuple(data.get("aliases", [])),
        result_envelope=tuple(data.get("result_envelope", [])),
        disallowed_identifiers=tuple(data.get("disallowed_identifiers", [])),
        missing_features=tuple(data.get("missing_features", [])),
        platform_overhead=float(data.get("platform_overhead", 1.3)),
        max_payload_size=int(data.get("max_payload_size", 1024 * 1024)),
        max_execution_time=float(data.get("max_execution_time", 30.0)),
        requirements=dict(data.get("requirements", {})),
    )


def load_profiles(path: str | Path | None = None) -> ProfileRegistry:
    """Load profiles from a YAML file (the bundled ``profiles.yaml`` by default)."""
    with open(path or DEFAULT_PROFILES_PATH) as f:
        data = yaml.safe_load(f) or {}
    return ProfileRegistry([_profile_from_dict(p) for p in data.get("profiles", [])])


_default_registry: ProfileRegistry | None = None


def default_registry() -> ProfileRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = load_profiles()
    return _default_registry


def get_profile(name: str) -> Profile:
    return default_registry().get(name)
