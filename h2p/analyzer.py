from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .parser import CORRUPTION_MARKERS
from .policy import SpecialParameterRule, resolve_keep_stable, rules_for_synth
from .preset import KeepStable, ParamType, ParamValue, Preset, widen


# Generic timbre words that make poor generated names.
NAME_STOPLIST = frozenset(
    {
        "bass",
        "guitar",
        "piano",
        "lead",
        "pad",
        "unison",
        "sub",
        "strings",
        "keys",
        "flute",
        "organ",
        "brass",
        "bells",
        "pluck",
        "plucked",
        "epiano",
        "chorus",
        "stab",
        "chord",
        "chords",
        "drum",
        "synth",
        "kick",
        "snare",
        "clap",
        "hihat",
        "edit",
    }
)


@dataclass(frozen=True)
class NumericStats:
    min_value: float
    max_value: float
    avg_value: float


@dataclass
class ParamModelEntry:
    """Statistics for one parameter id across a library.

    ``values`` holds every observed value, except that it collapses to a
    single element when all observations are identical.
    ``distinct_values`` is always the full deduplicated list.
    """

    type: ParamType
    values: List[ParamValue]
    distinct_values: List[ParamValue] = field(default_factory=list)
    frequencies: Dict[ParamValue, int] = field(default_factory=dict)
    stats: Optional[NumericStats] = None
    keep_stable: Optional[KeepStable] = None

    @property
    def min_value(self) -> float | None:
        return self.stats.min_value if self.stats is not None else None

    @property
    def max_value(self) -> float | None:
        return self.stats.max_value if self.stats is not None else None

    @property
    def avg_value(self) -> float | None:
        return self.stats.avg_value if self.stats is not None else None

    def to_json(self, *, include_values: bool = True) -> Dict[str, object]:
        out: Dict[str, object] = {
            "type": self.type.value,
            "values": list(self.values) if include_values else [],
            "distinctValues": list(self.distinct_values),
        }
        if self.stats is not None:
            out["minValue"] = self.stats.min_value
            out["maxValue"] = self.stats.max_value
            out["avgValue"] = self.stats.avg_value
        if self.keep_stable is not None:
            out["keepStable"] = self.keep_stable.value
        return out


ParamsModel = Dict[str, ParamModelEntry]


def average(values: Sequence[float]) -> float:
    if not values:
        return 0
    return sum(values) / len(values)


def _is_corrupted_id(param_id: str) -> bool:
    return any(marker in param_id for marker in CORRUPTION_MARKERS)


def analyze_params(
    presets: Iterable[Preset],
    *,
    rules: Sequence[SpecialParameterRule] | None = None,
) -> ParamsModel:
    if rules is None:
        rules = rules_for_synth(None)

    model: ParamsModel = {}
    for preset in presets:
        for param in preset.params:
            entry = model.get(param.id)
            if entry is None:
                if _is_corrupted_id(param.id):
                    continue
                model[param.id] = ParamModelEntry(
                    type=param.type,
                    values=[param.value],
                    keep_stable=resolve_keep_stable(param.id, rules),
                )
                continue
            entry.values.append(param.value)
            entry.type = widen(entry.type, param.type)

    for entry in model.values():
        entry.frequencies = dict(Counter(entry.values))
        entry.distinct_values = list(dict.fromkeys(entry.values))
        if len(entry.distinct_values) == 1:
            entry.values = list(entry.distinct_values)

        if entry.type.is_numeric:
            numbers = [float(v) for v in entry.values]
            entry.stats = NumericStats(
                min_value=min(numbers),
                max_value=max(numbers),
                avg_value=average(numbers),
            )
    return model


def params_model_by_section(model: ParamsModel) -> Dict[str, ParamsModel]:
    by_section: Dict[str, ParamsModel] = {}
    for param_id, entry in model.items():
        section = param_id.split("/", 1)[0]
        if not section:
            continue
        by_section.setdefault(section, {})[param_id] = entry
    return by_section


def dictionary_of_names(presets: Iterable[Preset]) -> List[str]:
    """Collect name fragments usable for generated preset names."""

    names: List[str] = []
    for preset in presets:
        for token in preset.preset_name.replace("_", " ").split(" "):
            if len(token) <= 3 or token.upper() == token:
                continue
            if "-" in token or "(" in token or ")" in token:
                continue
            if token.lower() in NAME_STOPLIST:
                continue
            names.append(token)
    return names


def dump_params_model(model: ParamsModel, path: Path | str) -> Path:
    """Write the model grouped by section as JSON, without raw value pools."""

    out_path = Path(path)
    grouped = {
        section: {
            param_id: entry.to_json(include_values=False)
            for param_id, entry in entries.items()
        }
        for section, entries in params_model_by_section(model).items()
    }
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(grouped, indent=2), encoding="utf-8")
    return out_path
