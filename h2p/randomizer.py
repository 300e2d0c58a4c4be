"""Generate new presets from a library and its parameter statistics.

Three modes, all returning a fresh ``PresetLibrary`` rooted at
``<user presets>/RANDOM``:

  fully random   every parameter drawn from the library-wide value pool
  randomize      variations of one or more base presets
  merge          weighted blend of several resolved presets

The source library and its presets are never mutated.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import random
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, TypeVar

from .analyzer import ParamModelEntry, ParamsModel, dictionary_of_names
from .config import GenerationConfig
from .library import RANDOM_FOLDER, PresetLibrary
from .names import dictionary_name, random_name
from .parser import classify_value, format_value, is_numeric
from .policy import is_excluded
from .preset import KeepStable, MetaEntry, ParamType, ParamValue, Preset, PresetParam


logger = logging.getLogger(__name__)

FULLY_RANDOM_FOLDER = "Fully Random"
RANDOMIZED_FOLDER = "Randomized Preset"
MERGED_FOLDER = "Merged Preset"
NAME_PREFIX = "RND"
GENERATOR_AUTHOR = "Random Generator"

MERGE_MIN_OVERLAP = 0.5
MERGE_WARN_OVERLAP = 0.8

T = TypeVar("T")


class MergeIncompatibleError(ValueError):
    pass


class PresetNotFoundError(ValueError):
    pass


def get_random_array_item(items: Sequence[T]) -> Optional[T]:
    if not items:
        return None
    return random.choice(items)


def get_random_value(entry: ParamModelEntry, *, creative: bool = False) -> Optional[ParamValue]:
    """Draw a value for one parameter.

    The raw ``values`` pool keeps duplicates, so a plain draw follows the
    observed frequencies.  Creative mode draws uniformly over the distinct
    values instead, which favours rare settings.
    """

    pool = entry.distinct_values if creative else entry.values
    return get_random_array_item(pool)


def calculate_random_merge_ratios(amount: int) -> List[float]:
    if amount < 1:
        raise ValueError("amount must be >= 1")
    # 1 - random() lies in (0, 1], so every preset keeps some weight.
    weights = [1.0 - random.random() for _ in range(amount)]
    total = sum(weights)
    return [weight / total for weight in weights]


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def truncate_decimals(value: float, places: int = 2) -> float:
    scale = 10**places
    # Rounding first absorbs binary noise such as 0.29 * 100 == 28.999999999999996.
    return math.trunc(round(value * scale, 6)) / scale


def _coerce(value: float, param_type: ParamType) -> ParamValue:
    if param_type is ParamType.INTEGER:
        return round_half_up(value)
    return truncate_decimals(value)


def _assign(param: PresetParam, value: ParamValue) -> None:
    if isinstance(value, str):
        param.value = value
        param.type = ParamType.STRING
        return
    # Typed as its written text reads back, so a whole float becomes an integer.
    param.value, param.type = classify_value(format_value(value))


def _model_entry(model: ParamsModel, param: PresetParam, preset: Preset) -> ParamModelEntry | None:
    entry = model.get(param.id)
    if entry is None:
        logger.error("parameter %s of %s is missing from the model", param.id, preset.file_path)
    return entry


def _skip_in_variation(entry: ParamModelEntry, *, stable: bool) -> bool:
    if is_excluded(entry.keep_stable, stable=stable):
        return True
    if not stable:
        return False
    return entry.type is ParamType.STRING or len(entry.distinct_values) <= 2


def randomize_preset(base: Preset, model: ParamsModel, config: GenerationConfig) -> Preset:
    """Return a copy of ``base`` pulled toward random draws from ``model``.

    With ratio ``r`` (randomness percent clamped to [0, 100]) a numeric
    parameter becomes ``old * (1 - r) + drawn * r``; a string parameter is
    replaced by the draw with probability ``r``.
    """

    ratio = min(max(config.effective_randomness, 0), 100) / 100
    preset = base.clone()
    for param in preset.params:
        entry = _model_entry(model, param, preset)
        if entry is None or _skip_in_variation(entry, stable=config.stable):
            continue
        drawn = get_random_value(entry, creative=config.creative)
        if drawn is None or drawn == param.value:
            continue

        if param.type.is_numeric and not isinstance(drawn, str):
            blended = float(param.value) * (1 - ratio) + float(drawn) * ratio
            _assign(param, _coerce(blended, param.type))
        elif random.random() < ratio:
            _assign(param, drawn)
    return preset


def _randomize_all(preset: Preset, model: ParamsModel, config: GenerationConfig) -> None:
    for param in preset.params:
        entry = _model_entry(model, param, preset)
        if entry is None or entry.keep_stable is KeepStable.ALWAYS:
            continue
        value = get_random_value(entry, creative=config.creative)
        if value is not None:
            _assign(param, value)


def _randomize_by_section_donor(
    preset: Preset,
    sources: Sequence[Preset],
    model: ParamsModel,
    config: GenerationConfig,
) -> None:
    # Each section takes its values from one donor so related settings stay coherent.
    donors: Dict[str, int] = {}
    donor_params: Dict[int, Dict[str, PresetParam]] = {}
    for param in preset.params:
        entry = _model_entry(model, param, preset)
        if entry is None:
            continue
        donor = donors.get(param.section)
        if donor is None:
            donor = random.randrange(len(sources))
            donors[param.section] = donor
        if entry.type is ParamType.STRING or len(entry.distinct_values) <= 2:
            continue
        if entry.keep_stable is not None:
            continue

        by_id = donor_params.get(donor)
        if by_id is None:
            by_id = {p.id: p for p in sources[donor].params}
            donor_params[donor] = by_id
        donor_param = by_id.get(param.id)
        if donor_param is not None:
            _assign(param, donor_param.value)
            continue
        value = get_random_value(entry, creative=config.creative)
        if value is not None:
            _assign(param, value)


def _generated_name(names: Sequence[str], words: int) -> str:
    if names:
        return dictionary_name(names, words)
    return random_name(words)


def _place(preset: Preset, folder: str, name: str, used: Set[str]) -> None:
    """Give `preset` a file path under `folder` that no earlier output of the batch holds.

    Paths compare case-insensitively; a taken name gets a `` 2``, `` 3``, ... suffix.
    """

    candidate = name
    counter = 1
    while f"{folder}/{candidate}.h2p".lower() in used:
        counter += 1
        candidate = f"{name} {counter}"
    preset.file_path = f"{folder}/{candidate}.h2p"
    preset.preset_name = candidate
    used.add(preset.file_path.lower())


def _output_library(library: PresetLibrary) -> PresetLibrary:
    return dataclasses.replace(
        library,
        user_presets_folder=str(Path(library.user_presets_folder) / RANDOM_FOLDER),
        presets=[],
    )


def _binary_pool(presets: Sequence[Preset]) -> List[str]:
    return [preset.binary for preset in presets if preset.binary]


def _swap_binary(preset: Preset, pool: Sequence[str]) -> None:
    binary = get_random_array_item(pool)
    if binary is not None:
        preset.binary = binary


def get_preset_description_suffix(config: GenerationConfig) -> str:
    suffix = f"Generated by the h2p preset randomizer on {date.today().isoformat()}."
    if config.category:
        suffix += f" Based on presets of category {config.category}."
    return suffix


def _generated_meta(description: str, config: GenerationConfig) -> List[MetaEntry]:
    meta = [
        MetaEntry(key="Author", value=GENERATOR_AUTHOR),
        MetaEntry(key="Description", value=f"{description} {get_preset_description_suffix(config)}"),
    ]
    if config.category:
        meta.append(MetaEntry(key="Categories", value=config.category))
    return meta


def _append_description(preset: Preset, text: str) -> None:
    for entry in preset.meta:
        if entry.key != "Description":
            continue
        current = ", ".join(entry.value) if isinstance(entry.value, list) else entry.value
        entry.value = f"{current}. {text}" if current else text
        return
    preset.meta.append(MetaEntry(key="Description", value=text))


def generate_fully_random_presets(
    library: PresetLibrary, model: ParamsModel, config: GenerationConfig
) -> PresetLibrary:
    sources = library.presets
    if not sources:
        raise ValueError("no presets left to randomize from")

    out = _output_library(library)
    names = dictionary_of_names(sources) if config.dictionary else []
    binaries = _binary_pool(sources) if config.use_binary else []
    used: Set[str] = set()

    folder = f"/{FULLY_RANDOM_FOLDER}"
    if config.category:
        folder += "/" + config.category.replace(":", " ")

    for _ in range(config.effective_amount):
        preset = random.choice(sources).clone()
        if config.stable:
            _randomize_by_section_donor(preset, sources, model, config)
        else:
            _randomize_all(preset, model, config)

        _place(preset, folder, f"{NAME_PREFIX} {_generated_name(names, 3)}", used)
        preset.meta = _generated_meta("Fully randomized preset.", config)
        preset.categories = [config.category] if config.category else []
        if config.use_binary:
            _swap_binary(preset, binaries)
        out.presets.append(preset)

    logger.info("generated %d fully random presets", len(out.presets))
    return out


def find_base_preset(library: PresetLibrary, selector: str | None) -> Preset | None:
    """Resolve a base preset selector.

    ``None`` or ``?`` picks any preset, ``?text`` picks among presets whose
    path contains ``text`` (case-insensitive), anything else returns the
    first preset whose path contains the selector.
    """

    presets = library.presets
    if not selector or selector == "?":
        return get_random_array_item(presets)
    if selector.startswith("?"):
        needle = selector.replace("?", "").lower()
        return get_random_array_item([p for p in presets if needle in p.file_path.lower()])
    for preset in presets:
        if selector in preset.file_path:
            return preset
    return None


def generate_randomized_presets(
    library: PresetLibrary, model: ParamsModel, config: GenerationConfig
) -> PresetLibrary:
    selectors = config.preset or ("?",)
    bases: List[Preset] = []
    for selector in selectors:
        base = find_base_preset(library, selector)
        if base is None:
            raise PresetNotFoundError(f"no preset matching {selector!r} found")
        bases.append(base)

    amount = config.effective_amount
    per_base = math.ceil(amount / len(bases))
    out = _output_library(library)
    names = dictionary_of_names(library.presets) if config.dictionary else []
    binaries = _binary_pool(library.presets) if config.use_binary else []
    used: Set[str] = set()
    suffix = get_preset_description_suffix(config)

    for base in bases:
        logger.info("randomizing %s", base.file_path)
        for _ in range(per_base):
            variation = randomize_preset(base, model, config)
            name = f"{NAME_PREFIX} {_generated_name(names, 2)} {base.preset_name}"
            _place(variation, f"/{RANDOMIZED_FOLDER}/{base.preset_name}", name, used)
            _append_description(variation, f"Variation of {base.preset_name}. {suffix}")
            if config.use_binary:
                _swap_binary(variation, binaries)
            out.presets.append(variation)

    del out.presets[amount:]
    logger.info("generated %d preset variations", len(out.presets))
    return out


def resolve_merge_presets(library: PresetLibrary, selectors: Sequence[str]) -> List[Preset]:
    """Expand merge selectors into the list of presets to blend.

    ``?`` and ``?text`` add one random (matching) preset, ``*`` replaces the
    list with the whole library, ``*text`` adds every match, and a plain
    selector adds the first preset whose path contains it.
    """

    presets = library.presets
    resolved: List[Preset] = []
    for selector in selectors:
        if selector == "?":
            pick = get_random_array_item(presets)
            if pick is not None:
                resolved.append(pick)
        elif selector == "*":
            resolved = list(presets)
            break
        elif selector.startswith("*"):
            needle = selector.replace("*", "").lower()
            resolved.extend(p for p in presets if needle in p.file_path.lower())
        elif selector.startswith("?"):
            needle = selector.replace("?", "").lower()
            pick = get_random_array_item([p for p in presets if needle in p.file_path.lower()])
            if pick is not None:
                resolved.append(pick)
        else:
            match = next((p for p in presets if selector in p.file_path), None)
            if match is None:
                raise PresetNotFoundError(f"no preset matching {selector!r} found")
            resolved.append(match)

    if len(resolved) < 2:
        raise ValueError(f"merging needs at least two presets, selectors resolved to {len(resolved)}")
    return resolved


def validate_merge_compatibility(presets: Sequence[Preset]) -> None:
    if len(presets) < 2:
        return
    first = presets[0]
    first_ids = first.param_ids()
    if not first_ids:
        raise MergeIncompatibleError(f"{first.file_path} has no parameters and is incompatible")

    for other in presets[1:]:
        overlap = len(first_ids & other.param_ids()) / len(first_ids)
        if overlap < MERGE_MIN_OVERLAP:
            raise MergeIncompatibleError(
                f"{first.preset_name} and {other.preset_name} are incompatible: "
                f"only {overlap:.0%} of parameters shared"
            )
        if overlap < MERGE_WARN_OVERLAP:
            logger.warning(
                "%s and %s share only %.0f%% of parameters; merge may sound unexpected",
                first.preset_name,
                other.preset_name,
                overlap * 100,
            )


def _merge_into(
    seed: Preset,
    sources: Sequence[Dict[str, PresetParam]],
    ratios: Sequence[float],
    model: ParamsModel,
    config: GenerationConfig,
) -> None:
    for param in seed.params:
        entry = _model_entry(model, param, seed)
        if entry is None or _skip_in_variation(entry, stable=config.stable):
            continue

        if not param.type.is_numeric:
            other = random.choice(sources).get(param.id)
            if other is not None:
                _assign(param, other.value)
            continue

        merged = 0.0
        for ratio, by_id in zip(ratios, sources):
            other = by_id.get(param.id)
            value = other.value if other is not None and is_numeric(other.value) else param.value
            merged += float(value) * ratio
        _assign(param, _coerce(merged, param.type))


def generate_merged_presets(
    library: PresetLibrary, model: ParamsModel, config: GenerationConfig
) -> PresetLibrary:
    resolved = resolve_merge_presets(library, config.merge)
    validate_merge_compatibility(resolved)

    out = _output_library(library)
    names = dictionary_of_names(resolved) if config.dictionary else []
    binaries = _binary_pool(resolved) if config.use_binary else []
    used: Set[str] = set()
    sources = [{p.id: p for p in preset.params} for preset in resolved]
    merged_names = ", ".join(preset.preset_name for preset in resolved)

    for _ in range(config.effective_amount):
        preset = random.choice(resolved).clone()
        ratios = calculate_random_merge_ratios(len(resolved))
        _merge_into(preset, sources, ratios, model, config)
        if config.randomness:
            preset = randomize_preset(preset, model, config)

        _place(preset, f"/{MERGED_FOLDER}", f"{NAME_PREFIX} {_generated_name(names, 3)}", used)
        preset.meta = _generated_meta(f"Merged preset, based on {merged_names}.", config)
        preset.categories = [config.category] if config.category else []
        if config.use_binary:
            _swap_binary(preset, binaries)
        out.presets.append(preset)

    logger.info("generated %d merged presets from %d sources", len(out.presets), len(resolved))
    return out
