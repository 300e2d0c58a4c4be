from __future__ import annotations

import logging
from typing import List, Sequence

from .config import GenerationConfig
from .library import PresetLibrary, find_favorites
from .preset import Preset


logger = logging.getLogger(__name__)


def narrow_down_by_category(presets: Sequence[Preset], category: str) -> List[Preset]:
    """Keep presets with at least one category starting with ``category``.

    Categories are hierarchical (``Bass:Sub``), so ``Bass`` matches both
    ``Bass`` and ``Bass:Sub``.
    """

    filtered = [
        preset
        for preset in presets
        if any(own.startswith(category) for own in preset.categories)
    ]
    logger.info("narrowed down by category %r to %d presets", category, len(filtered))
    return filtered


def narrow_down_by_author(presets: Sequence[Preset], author: str) -> List[Preset]:
    filtered = [preset for preset in presets if preset.meta_value("Author") == author]
    logger.info("narrowed down by author %r to %d presets", author, len(filtered))
    return filtered


def narrow_down_by_favorites(library: PresetLibrary, file_names: Sequence[str]) -> List[Preset]:
    favorites = find_favorites(library, file_names)
    if favorites is None:
        logger.error(
            "could not find favorites file(s) %s; keeping all presets",
            ", ".join(file_names),
        )
        return list(library.presets)

    wanted = {
        f"{fav.path.lower()}/{fav.name.lower()}.h2p"
        for favorite_file in favorites
        for fav in favorite_file.presets
    }
    filtered = [preset for preset in library.presets if preset.file_path.lower() in wanted]
    logger.info(
        "narrowed down via favorites %s to %d presets", ", ".join(file_names), len(filtered)
    )
    return filtered


def apply_preset_filters(library: PresetLibrary, config: GenerationConfig) -> PresetLibrary:
    filtered = library.with_presets(library.presets)
    if config.favorites:
        filtered = filtered.with_presets(narrow_down_by_favorites(filtered, config.favorites))
    if config.author:
        filtered = filtered.with_presets(narrow_down_by_author(filtered.presets, config.author))
    if config.category:
        filtered = filtered.with_presets(narrow_down_by_category(filtered.presets, config.category))
    return filtered
