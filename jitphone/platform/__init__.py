"""Platform adaptation: profiles, downleveling, harnesses and the adapter."""

from jitphone.platform.adapter import (
    AdaptationOptions,
    AdaptationResult,
    CompatibilityVerdict,
    PlatformAdapter,
    adapt,
)
from jitphone.platform.profiles import Profile, ProfileRegistry, get_profile, load_profiles

__all__ = [
    "AdaptationOptions",
    "AdaptationResult",
    "CompatibilityVerdict",
    "PlatformAdapter",
    "Profile",
    "ProfileRegistry",
    "adapt",
    "get_profile",
    "load_profiles",
]
