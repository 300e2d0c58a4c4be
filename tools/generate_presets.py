#!/usr/bin/env python3
"""Generate random, randomized or merged u-he presets from a preset library.

The library root is a synth data folder laid out as::

    <root>/Presets/<synth>/...       factory and third-party presets
    <root>/UserPresets/<synth>/...   user presets; output goes to RANDOM/

Options can come from flags, a JSON config file (``--config``), or both;
flags win over the file.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from h2p.config import parse_generation_config
from h2p.generate import generate
from h2p.library import collect_favorites_files, collect_library_entries, load_preset_library


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate u-he presets from an existing preset library",
    )
    parser.add_argument("--synth", required=True, help="Synth name, e.g. Zebra3 or Diva")
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Synth data folder holding Presets/<synth> and UserPresets/<synth>",
    )
    parser.add_argument("--presets", type=Path, default=None, help="Override the factory presets folder")
    parser.add_argument("--user-presets", type=Path, default=None, help="Override the user presets folder")
    parser.add_argument(
        "--pattern",
        default="**/*",
        help="Glob (without .h2p) selecting presets; prefix /Local/ or /User/ to pick a library",
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON file with generation options")
    parser.add_argument("--amount", type=int, default=None, help="Number of presets to generate")
    parser.add_argument(
        "--preset",
        action="append",
        default=None,
        help="Base preset selector for variations (repeatable; '?' picks at random)",
    )
    parser.add_argument(
        "--merge",
        action="append",
        default=None,
        help="Preset selector to merge (repeatable; '?', '?text', '*', '*text')",
    )
    parser.add_argument("--randomness", type=float, default=None, help="Randomness percent (0-100)")
    parser.add_argument("--stable", action="store_true", default=None, help="Keep generated presets closer to sane values")
    parser.add_argument(
        "--binary",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Carry (and shuffle) the binary section of presets",
    )
    parser.add_argument("--category", default=None, help="Only use presets of this category prefix")
    parser.add_argument("--author", default=None, help="Only use presets by this author")
    parser.add_argument(
        "--favorites",
        action="append",
        default=None,
        help="Only use presets listed in this .uhe-fav file (repeatable)",
    )
    parser.add_argument("--dictionary", action="store_true", default=None, help="Build names from existing preset names")
    parser.add_argument("--creative", action="store_true", default=None, help="Draw rare values as often as common ones")
    parser.add_argument("--debug", action="store_true", default=None, help="Verbose logging and params model dump")
    return parser


_CONFIG_FLAGS = (
    "amount",
    "preset",
    "merge",
    "randomness",
    "stable",
    "binary",
    "category",
    "author",
    "favorites",
    "dictionary",
    "creative",
    "debug",
)


def main() -> int:
    parser = _build_arg_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    payload: dict = {}
    if args.config is not None:
        payload = json.loads(args.config.expanduser().resolve().read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            parser.error("--config must hold a JSON object")
    for name in _CONFIG_FLAGS:
        value = getattr(args, name)
        if value is not None:
            payload[name] = value
    payload["synth"] = args.synth

    try:
        config = parse_generation_config(payload)
    except ValueError as exc:
        parser.error(str(exc))

    if args.root is None and args.user_presets is None:
        parser.error("either --root or --user-presets is required")
    root = args.root.expanduser().resolve() if args.root is not None else None
    presets_folder = args.presets
    if presets_folder is None and root is not None:
        presets_folder = root / "Presets" / args.synth
    user_presets_folder = args.user_presets
    if user_presets_folder is None:
        user_presets_folder = root / "UserPresets" / args.synth
    if root is None:
        root = user_presets_folder.expanduser().resolve()

    entries = collect_library_entries(presets_folder, user_presets_folder, args.pattern)
    library = load_preset_library(
        args.synth,
        entries,
        root_folder=str(root),
        user_presets_folder=str(Path(user_presets_folder).expanduser().resolve()),
        presets_folder=str(presets_folder) if presets_folder is not None else None,
        favorites=collect_favorites_files(root),
        binary=config.with_synth_defaults().use_binary,
    )

    result = generate(config, library)
    print(f"Wrote {result.preset_count} presets -> {result.output_folder}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
