"""Parameters that must not be (freely) randomized.

Rules match by substring containment against the parameter id.

  ALWAYS       never randomized in any mode (tuning, pointers into the
               binary section, preset-initialization memory).
  STABLE_MODE  left alone only when stable generation is requested.

Global rules apply to every synth; per-synth rules are added on top.
Global rules are harmless for synths that lack the matching parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .preset import KeepStable


@dataclass(frozen=True)
class SpecialParameterRule:
    id_substring: str
    keep_stable: KeepStable


@dataclass(frozen=True)
class SynthDefaults:
    binary: bool = False


GLOBAL_RULES: tuple[SpecialParameterRule, ...] = (
    # Voice circuit transpose (semitones) and fine tune (cents).
    SpecialParameterRule("VCC/Trsp", KeepStable.ALWAYS),
    SpecialParameterRule("VCC/FTun", KeepStable.ALWAYS),
)

# Curve/guide indices in the oscillator and MSEG geometry sections point at
# curve slots stored in the binary section.
_GEOMETRY_RULES: tuple[SpecialParameterRule, ...] = (
    SpecialParameterRule("O1Geo1/Curve", KeepStable.ALWAYS),
    SpecialParameterRule("O1Geo1/Guide", KeepStable.ALWAYS),
    SpecialParameterRule("O1Geo1/CrvPos", KeepStable.ALWAYS),
    SpecialParameterRule("M1Geo1/Curve", KeepStable.ALWAYS),
    SpecialParameterRule("M1Geo1/Guide", KeepStable.ALWAYS),
    SpecialParameterRule("M1Geo1/CrvPos", KeepStable.ALWAYS),
    SpecialParameterRule("MPreset/", KeepStable.ALWAYS),
)

SYNTH_RULES: Dict[str, tuple[SpecialParameterRule, ...]] = {
    "Zebra3": _GEOMETRY_RULES,
    "Zebralette3": _GEOMETRY_RULES,
    "Diva": (),
    "Repro-1": (),
    "Repro-5": (),
}

SYNTH_DEFAULTS: Dict[str, SynthDefaults] = {
    "Repro-1": SynthDefaults(binary=True),
    "Repro-5": SynthDefaults(binary=True),
}


def rules_for_synth(synth: str | None) -> List[SpecialParameterRule]:
    rules = list(GLOBAL_RULES)
    if synth:
        rules.extend(SYNTH_RULES.get(synth, ()))
    return rules


def defaults_for_synth(synth: str | None) -> SynthDefaults:
    if not synth:
        return SynthDefaults()
    return SYNTH_DEFAULTS.get(synth, SynthDefaults())


def resolve_keep_stable(
    param_id: str, rules: Sequence[SpecialParameterRule]
) -> Optional[KeepStable]:
    """Return the strongest tag among rules whose substring occurs in ``param_id``."""

    tag: Optional[KeepStable] = None
    for rule in rules:
        if rule.id_substring not in param_id:
            continue
        if rule.keep_stable is KeepStable.ALWAYS:
            return KeepStable.ALWAYS
        tag = rule.keep_stable
    return tag


def is_excluded(keep_stable: Optional[KeepStable], *, stable: bool) -> bool:
    if keep_stable is KeepStable.ALWAYS:
        return True
    return stable and keep_stable is KeepStable.STABLE_MODE
