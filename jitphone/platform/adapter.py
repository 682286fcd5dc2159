"""Platform adapter: makes optimized code runnable on a target profile.

Passes run in a fixed order: strip hint markers, guard disallowed
identifiers, inject polyfills, downlevel syntax, wrap in the profile harness,
and (when asked) shrink and truncate to the payload limit. The result carries
a compatibility verdict computed on the final output.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from jitphone.cache import ContentCache, fingerprint, make_cache
from jitphone.optimizer.passes import strip_hints
from jitphone.platform.downlevel import downlevel
from jitphone.platform.harness import guard_name, polyfill_preamble, wrap
from jitphone.platform.profiles import Profile, default_registry
from jitphone.utils.jstext import collapse_whitespace, mask, strip_comments

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n/* [jitphone: truncated] */"
POLYFILL_OVERHEAD = 1.2
ISSUE_PENALTY = 0.2


@dataclass
class AdaptationOptions:
    enable_polyfills: bool = True
    optimize_for_size: bool = False
    optimization_level: int = 0  # Only feeds the performance estimate

    def to_dict(self) -> dict:
        return {
            "enable_polyfills": self.enable_polyfills,
            "optimize_for_size": self.optimize_for_size,
            "optimization_level": self.optimization_level,
        }


@dataclass
class CompatibilityVerdict:
    compatible: bool
    issues: list[str] = field(default_factory=list)
    confidence: float = 1.0
    unguarded_identifiers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "compatible": self.compatible,
            "issues": list(self.issues),
            "confidence": self.confidence,
            "unguarded_identifiers": list(self.unguarded_identifiers),
        }


@dataclass
class AdaptationResult:
    """Adapted code plus the judgement of whether it suits the profile."""

    code: str
    profile: str
    verdict: CompatibilityVerdict
    applied_adaptations: list[str] = field(default_factory=list)
    performance_impact: float = 0.0
    requirements: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    original_size: int = 0
    adapted_size: int = 0
    truncated: bool = False

    def summary(self) -> str:
        status = "compatible" if self.verdict.compatible else "INCOMPATIBLE"
        lines = [
            f"Profile: {self.profile} ({status}, confidence {self.verdict.confidence:.1f})",
            f"Size: {self.original_size} -> {self.adapted_size}",
            f"Adaptations: {', '.join(self.applied_adaptations) or 'none'}",
        ]
        for issue in self.verdict.issues:
            lines.append(f"  ! {issue}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "profile": self.profile,
            "verdict": self.verdict.to_dict(),
            "applied_adaptations": list(self.applied_adaptations),
            "performance_impact": self.performance_impact,
            "requirements": dict(self.requirements),
            "warnings": list(self.warnings),
            "original_size": self.original_size,
            "adapted_size": self.adapted_size,
            "truncated": self.truncated,
        }


# --- Identifier scanning ---


def _identifier_pattern(name: str) -> re.Pattern:
    return re.compile(rf"(?<![\w$.]){re.escape(name)}(?![\w$])")


def find_disallowed(code: str, identifiers) -> list[str]:
    """Disallowed identifiers referenced as bare names outside strings and comments."""
    text = mask(code).text
    return [name for name in identifiers if _identifier_pattern(name).search(text)]


def guard_identifiers(code: str, identifiers) -> tuple[str, list[str]]:
    """Swap bare references for their guarded stand-ins."""
    masked = mask(code)
    text = masked.text
    guarded = []
    for name in identifiers:
        pattern = _identifier_pattern(name)
        if pattern.search(text):
            text = pattern.sub(guard_name(name), text)
            guarded.append(name)
    return masked.restore(text), guarded


def compute_verdict(code: str, profile: Profile) -> CompatibilityVerdict:
    remaining = find_disallowed(code, profile.disallowed_identifiers)
    issues = [f"Disallowed identifier '{name}' is not guarded" for name in remaining]
    if len(code) > profile.max_payload_size:
        issues.append(f"Payload size {len(code)} exceeds the {profile.max_payload_size} character limit")
    return CompatibilityVerdict(
        compatible=not issues,
        issues=issues,
        confidence=round(max(0.0, 1.0 - ISSUE_PENALTY * len(issues)), 4),
        unguarded_identifiers=remaining,
    )


def performance_impact(level: int, profile: Profile, polyfills: bool) -> float:
    """Estimated slowdown ratio; informational only."""
    jit_speedup = 2.0 if level > 0 else 1.0
    polyfill_overhead = POLYFILL_OVERHEAD if polyfills else 1.0
    return round(jit_speedup * profile.platform_overhead * polyfill_overhead - 1.0, 4)


def shrink(code: str, limit: int) -> tuple[str, bool]:
    """Strip comments, collapse whitespace, then truncate to ``limit`` with a marker."""
    code = collapse_whitespace(strip_comments(code))
    if len(code) <= limit:
        return code, False
    keep = max(0, limit - len(TRUNCATION_MARKER))
    return code[:keep] + TRUNCATION_MARKER, True


# --- Adapter ---


class PlatformAdapter:
    """Adapts code for a profile, caching results by fingerprint."""

    def __init__(self, registry=None, cache: ContentCache | None = None):
        self.registry = registry or default_registry()
        self.cache = cache or make_cache("adapt")

    def adapt(self, code: str, profile: Profile | str, options: AdaptationOptions | None = None) -> AdaptationResult:
        result, _ = self.adapt_with_status(code, profile, options)
        return result

    def adapt_with_status(
        self, code: str, profile: Profile | str, options: AdaptationOptions | None = None
    ) -> tuple[AdaptationResult, bool]:
        options = options or AdaptationOptions()
        if isinstance(profile, str):
            profile = self.registry.get(profile)
        key = fingerprint(code, {"stage": "adapt", "profile": profile.to_dict(), **options.to_dict()})
        return self.cache.get_or_compute(key, lambda: self._adapt(code, profile, options))

    def _adapt(self, code: str, profile: Profile, options: AdaptationOptions) -> AdaptationResult:
        applied: list[str] = []
        warnings: list[str] = []

        adapted = strip_hints(code)
        if adapted != code:
            applied.append("strip-hints")

        guarded: list[str] = []
        if options.enable_polyfills:
            adapted, guarded = guard_identifiers(adapted, profile.disallowed_identifiers)
            if guarded:
                applied.append("guard-identifiers")
            adapted = polyfill_preamble(profile, guarded) + adapted
            applied.append("polyfills")
        else:
            for name in find_disallowed(adapted, profile.disallowed_identifiers):
                warnings.append(f"'{name}' is not available on {profile.name} and polyfills are disabled")

        adapted, downleveled = downlevel(adapted)
        applied.extend(f"downlevel:{name}" for name in downleveled)

        adapted = wrap(adapted, profile)
        applied.append(f"harness:{profile.harness}")

        truncated = False
        if options.optimize_for_size:
            adapted, truncated = shrink(adapted, profile.max_payload_size)
            applied.append("size-optimization")
            if truncated:
                applied.append("truncation")
                warnings.append(f"Output truncated to {profile.max_payload_size} characters")
                logger.warning("Truncated adapted code for %s to %d chars", profile.name, len(adapted))

        verdict = compute_verdict(adapted, profile)
        logger.debug("Adapted %d -> %d chars for %s", len(code), len(adapted), profile.name)
        return AdaptationResult(
            code=adapted,
            profile=profile.name,
            verdict=verdict,
            applied_adaptations=applied,
            performance_impact=performance_impact(options.optimization_level, profile, options.enable_polyfills),
            requirements=dict(profile.requirements),
            warnings=warnings,
            original_size=len(code),
            adapted_size=len(adapted),
            truncated=truncated,
        )


_default_adapter: PlatformAdapter | None = None


def adapt(code: str, profile: Profile | str, options: AdaptationOptions | None = None) -> AdaptationResult:
    """Adapt with the process-wide adapter and cache."""
    global _default_adapter
    if _default_adapter is None:
        _default_adapter = PlatformAdapter()
    return _default_adapter.adapt(code, profile, options)
