from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List

from .analyzer import ParamsModel, analyze_params, dump_params_model
from .config import FULLY_RANDOM_MODE, MERGE_MODE, RANDOMIZE_MODE, GenerationConfig
from .filters import apply_preset_filters
from .library import PresetLibrary, write_preset_library
from .policy import rules_for_synth
from .randomizer import (
    FULLY_RANDOM_FOLDER,
    MERGED_FOLDER,
    RANDOMIZED_FOLDER,
    generate_fully_random_presets,
    generate_merged_presets,
    generate_randomized_presets,
)


logger = logging.getLogger(__name__)

PARAMS_MODEL_FILE = "paramsModel.json"

Generator = Callable[[PresetLibrary, ParamsModel, GenerationConfig], PresetLibrary]

_GENERATORS: Dict[str, Generator] = {
    FULLY_RANDOM_MODE: generate_fully_random_presets,
    RANDOMIZE_MODE: generate_randomized_presets,
    MERGE_MODE: generate_merged_presets,
}

_MODE_FOLDERS = {
    FULLY_RANDOM_MODE: FULLY_RANDOM_FOLDER,
    RANDOMIZE_MODE: RANDOMIZED_FOLDER,
    MERGE_MODE: MERGED_FOLDER,
}


@dataclass(frozen=True)
class GenerationResult:
    written_files: List[str]
    output_folder: str
    preset_count: int


def generate(config: GenerationConfig, library: PresetLibrary) -> GenerationResult:
    """Filter, analyze, generate and write presets for one request."""

    if config.synth is None:
        config = dataclasses.replace(config, synth=library.synth)
    config = config.with_synth_defaults()
    working = apply_preset_filters(library, config)
    if not working.presets:
        raise ValueError("no presets left after applying filters")

    model = analyze_params(working.presets, rules=rules_for_synth(working.synth))
    if config.debug:
        dumped = dump_params_model(model, Path(working.root_folder) / PARAMS_MODEL_FILE)
        logger.debug("wrote parameter model to %s", dumped)

    mode = config.mode
    logger.info("generating %d presets (%s) for %s", config.effective_amount, mode, working.synth)
    generated = _GENERATORS[mode](working, model, config)
    written = write_preset_library(generated)
    return GenerationResult(
        written_files=written,
        output_folder=str(Path(generated.user_presets_folder) / _MODE_FOLDERS[mode]),
        preset_count=len(generated.presets),
    )
