#!/usr/bin/env python3
"""Dump the binary section of one .h2p preset as JSON."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from h2p.binary_section import PAYLOAD_ENCODINGS, binary_section_to_json, parse_binary_section
from h2p.library import PRESET_ENCODING
from h2p.parser import get_preset_binary_section


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode a preset's binary section to JSON")
    parser.add_argument("preset", type=Path, help="Path to a .h2p preset")
    parser.add_argument(
        "--encoding",
        action="append",
        choices=PAYLOAD_ENCODINGS,
        default=None,
        help="Payload view to include (repeatable, default uint32)",
    )
    parser.add_argument(
        "--max-entries",
        type=int,
        default=None,
        help="Cap each payload word list at this many entries",
    )
    parser.add_argument("-o", "--output", type=Path, default=None, help="Write JSON here instead of stdout")
    return parser


def main() -> int:
    parser = _build_arg_parser()
    args = parser.parse_args()

    text = args.preset.read_text(encoding=PRESET_ENCODING)
    section = get_preset_binary_section(text)
    if not section:
        print(f"{args.preset}: no binary section", file=sys.stderr)
        return 1

    parsed = parse_binary_section(section)
    report = binary_section_to_json(
        parsed,
        include_payload_encodings=args.encoding or ("uint32",),
        max_payload_entries=args.max_entries,
    )
    out = json.dumps(report, indent=2)
    if args.output is None:
        print(out)
    else:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(out + "\n", encoding="utf-8")
        print(f"Wrote {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
