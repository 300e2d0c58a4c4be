#!/usr/bin/env python3
"""Compare binary section headers across a folder of .h2p presets.

Examples
--------
  python tools/compare_binary_headers.py ~/u-he/Repro-1.data/Presets/Repro-1
  python tools/compare_binary_headers.py presets/ --show-constant
"""

from __future__ import annotations

import argparse
from collections import Counter, defaultdict
from pathlib import Path
import sys
from typing import Dict, Set

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from h2p.binary_section import BinarySectionError, parse_binary_section
from h2p.library import PRESET_ENCODING, PRESET_SUFFIX
from h2p.parser import get_preset_binary_section


def _fmt_counter(counter: Counter, limit: int = 8) -> str:
    items = [f"{value}x{count}" for value, count in counter.most_common(limit)]
    if len(counter) > limit:
        items.append(f"... (+{len(counter) - limit})")
    return ", ".join(items)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("folder", type=Path, help="folder searched recursively for presets")
    parser.add_argument(
        "--show-constant",
        action="store_true",
        help="also list header positions whose token never varies",
    )
    args = parser.parse_args()

    files = sorted(args.folder.expanduser().rglob("*" + PRESET_SUFFIX))
    header_lengths: Counter = Counter()
    payload_lengths: Counter = Counter()
    token_values: Dict[int, Set[str]] = defaultdict(set)
    field_counts: Counter = Counter()
    without_binary = 0
    failed = 0

    for path in files:
        section = get_preset_binary_section(path.read_text(encoding=PRESET_ENCODING))
        if not section:
            without_binary += 1
            continue
        try:
            parsed = parse_binary_section(section)
        except BinarySectionError as exc:
            failed += 1
            print(f"{path.name}: {exc}")
            continue

        header_lengths[len(parsed.header_bytes)] += 1
        payload_lengths[len(parsed.payload_bytes)] += 1
        for position, header_field in enumerate(parsed.header_fields):
            field_counts[position] += 1
            token_values[position].add(header_field.token)

    decoded = sum(header_lengths.values())
    print(
        f"files={len(files)} decoded={decoded} "
        f"without_binary={without_binary} failed={failed}"
    )
    if not decoded:
        return 0

    print(f"header byte lengths: {_fmt_counter(header_lengths)}")
    print(f"payload byte lengths: {_fmt_counter(payload_lengths)}")

    print("header fields by position:")
    for position in sorted(field_counts):
        count = field_counts[position]
        distinct = len(token_values[position])
        if distinct == 1 and not args.show_constant:
            continue
        print(f"  #{position:<4} seen={count:<5} distinct={distinct}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
