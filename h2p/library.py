from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .parser import is_valid_preset, parse_preset, serialize_preset
from .preset import Preset


logger = logging.getLogger(__name__)

LOCAL_PREFIX = "/Local/"
USER_PREFIX = "/User/"
RANDOM_FOLDER = "RANDOM"
PRESET_SUFFIX = ".h2p"
FAVORITES_SUFFIX = ".uhe-fav"
FAVORITES_KEY = "tag-category-fav"
# Byte-transparent: author names and binary text survive a read/write cycle.
PRESET_ENCODING = "latin-1"


class EmptyLibraryError(ValueError):
    pass


@dataclass(frozen=True)
class FavoritePreset:
    name: str
    path: str


@dataclass(frozen=True)
class FavoriteFile:
    """One category of one ``.uhe-fav`` file."""

    file_name: str
    category: str
    presets: Tuple[FavoritePreset, ...]


@dataclass
class PresetLibrary:
    synth: str
    root_folder: str
    user_presets_folder: str
    presets_folder: Optional[str] = None
    presets: List[Preset] = field(default_factory=list)
    favorites: List[FavoriteFile] = field(default_factory=list)

    def with_presets(self, presets: Iterable[Preset]) -> "PresetLibrary":
        return dataclasses.replace(self, presets=list(presets))


def parse_favorites_file(file_name: str, text: str) -> List[FavoriteFile]:
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError(f"{file_name}: favorites file must be an object")
    categories = payload.get(FAVORITES_KEY)
    if not isinstance(categories, dict):
        raise ValueError(f"{file_name}: missing {FAVORITES_KEY!r} object")

    out: List[FavoriteFile] = []
    for category, entries in categories.items():
        if not isinstance(entries, list):
            raise ValueError(f"{file_name}: category {category!r} must be an array")
        presets = []
        for idx, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ValueError(f"{file_name}: {category}[{idx}] must be an object")
            name = entry.get("name")
            db_path = entry.get("db_path")
            if not isinstance(name, str) or not isinstance(db_path, str):
                raise ValueError(f"{file_name}: {category}[{idx}] needs string name and db_path")
            presets.append(FavoritePreset(name=name, path=db_path))
        out.append(FavoriteFile(file_name=file_name, category=category, presets=tuple(presets)))
    return out


def load_favorites(files: Iterable[Tuple[str, str]]) -> List[FavoriteFile]:
    favorites: List[FavoriteFile] = []
    for file_name, text in files:
        try:
            favorites.extend(parse_favorites_file(file_name, text))
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError too.
            logger.warning("could not read favorites file %s: %s", file_name, exc)
    return favorites


def load_preset_library(
    synth: str,
    entries: Iterable[Tuple[str, str]],
    *,
    root_folder: str,
    user_presets_folder: str,
    presets_folder: Optional[str] = None,
    favorites: Iterable[Tuple[str, str]] = (),
    binary: bool = False,
) -> PresetLibrary:
    """Parse ``(virtual path, file text)`` pairs into a library.

    Presets that fail ``is_valid_preset`` are left out with a warning.
    """

    presets: List[Preset] = []
    for virtual_path, text in entries:
        preset = parse_preset(text, virtual_path, binary=binary)
        if not is_valid_preset(preset):
            logger.warning("skipping invalid or corrupted preset %s", virtual_path)
            continue
        presets.append(preset)

    if not presets:
        raise EmptyLibraryError(f"no valid {synth} presets found")

    logger.info("loaded %d %s presets", len(presets), synth)
    return PresetLibrary(
        synth=synth,
        root_folder=root_folder,
        user_presets_folder=user_presets_folder,
        presets_folder=presets_folder,
        presets=presets,
        favorites=load_favorites(favorites),
    )


def _split_pattern(pattern: str) -> Tuple[Optional[str], str]:
    selector = None
    if pattern.startswith(USER_PREFIX):
        selector, pattern = "User", pattern[len(USER_PREFIX) :]
    elif pattern.startswith(LOCAL_PREFIX):
        selector, pattern = "Local", pattern[len(LOCAL_PREFIX) :]
    pattern = pattern.replace("//", "/").lstrip("/")
    return selector, pattern or "**/*"


def _read_tree(folder: Path, pattern: str, prefix: str, *, skip_random: bool) -> List[Tuple[str, str]]:
    if not folder.is_dir():
        logger.warning("preset folder not found: %s", folder)
        return []
    out: List[Tuple[str, str]] = []
    for path in sorted(folder.glob(pattern + PRESET_SUFFIX)):
        if not path.is_file():
            continue
        rel = path.relative_to(folder)
        if skip_random and rel.parts and rel.parts[0] == RANDOM_FOLDER:
            continue
        out.append((prefix + rel.as_posix(), path.read_text(encoding=PRESET_ENCODING)))
    return out


def collect_library_entries(
    presets_folder: Path | str | None,
    user_presets_folder: Path | str,
    pattern: str = "**/*",
) -> List[Tuple[str, str]]:
    """Read preset files from disk as ``(virtual path, text)`` pairs.

    ``pattern`` is a glob without the ``.h2p`` suffix; a leading
    ``/Local/`` or ``/User/`` restricts the search to that library.
    Generated presets under ``UserPresets/.../RANDOM`` are never read back.
    """

    selector, glob = _split_pattern(pattern)
    entries: List[Tuple[str, str]] = []
    if presets_folder is not None and selector != "User":
        entries.extend(_read_tree(Path(presets_folder), glob, LOCAL_PREFIX, skip_random=False))
    if selector != "Local":
        entries.extend(_read_tree(Path(user_presets_folder), glob, USER_PREFIX, skip_random=True))
    return entries


def collect_favorites_files(root_folder: Path | str) -> List[Tuple[str, str]]:
    root = Path(root_folder)
    if not root.is_dir():
        return []
    files: List[Tuple[str, str]] = []
    for path in sorted(root.rglob("*" + FAVORITES_SUFFIX)):
        name = path.relative_to(root).as_posix()
        try:
            files.append((name, path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("could not read favorites file %s: %s", name, exc)
    return files


def safe_output_path(target_dir: Path | str, file_path: str) -> Path:
    root = Path(target_dir).resolve()
    candidate = (root / file_path.lstrip("/")).resolve()
    if candidate == root or root not in candidate.parents:
        raise ValueError(
            f"path traversal detected: {file_path!r} resolves outside {str(root)!r}"
        )
    return candidate


def write_preset_library(library: PresetLibrary) -> List[str]:
    targets: List[Tuple[Path, Preset]] = []
    seen: Dict[str, str] = {}
    for preset in library.presets:
        out_path = safe_output_path(library.user_presets_folder, preset.file_path)
        # Compared case-insensitively, as on macOS and Windows volumes.
        key = str(out_path).lower()
        if key in seen:
            raise ValueError(
                f"duplicate output path: {preset.file_path!r} collides with {seen[key]!r}"
            )
        seen[key] = preset.file_path
        targets.append((out_path, preset))

    written: List[str] = []
    for out_path, preset in targets:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(
            serialize_preset(preset), encoding=PRESET_ENCODING, errors="replace"
        )
        written.append(str(out_path))
    logger.info("wrote %d presets to %s", len(written), library.user_presets_folder)
    return written


def find_favorites(library: PresetLibrary, file_names: Sequence[str]) -> List[FavoriteFile] | None:
    """Return all category entries of the named favorites files, or None if one is missing."""

    found: List[FavoriteFile] = []
    for file_name in file_names:
        matches = [fav for fav in library.favorites if fav.file_name == file_name]
        if not matches:
            return None
        found.extend(matches)
    return found
