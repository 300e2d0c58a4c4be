"""Read and write the text layer of ``.h2p`` preset files.

File layout::

    /*@Meta

    Author:
    'Somebody'

    Categories:
    'Bass:Sub, Lead'

    */

    #cm=main
    CcOp=Global
    ...
    #cm=VCF1
    Cutoff=85.00

    // Section for ugly compressed binary Data
    // DON'T TOUCH THIS

    <opaque binary blob, see binary_section.py>

Metadata lines come in pairs (``Key:`` then a single-quoted value).  The
parameter body is ``key=value`` lines; ``#cm=<name>`` switches the section
every following parameter belongs to.  Parameter ids are ``section/key``
with ``/0``, ``/1``, ... appended when a key repeats inside one section.

The parser never raises on malformed text; the worst case is an empty
metadata or parameter list, which ``is_valid_preset`` rejects.
"""

from __future__ import annotations

import logging
import math
import re
from pathlib import PurePosixPath
from typing import Dict, List, Tuple

from .preset import MetaEntry, ParamType, ParamValue, Preset, PresetParam


logger = logging.getLogger(__name__)

META_MARKERS = ("/*@Meta", "/*@meta")
# UTF-8 byte order mark, decoded and as latin-1 reads its three bytes.
BYTE_ORDER_MARKS = ("\ufeff", "\xef\xbb\xbf")
HEADER_END = "*/"
BODY_END = "// Section"
SECTION_KEY = "#cm"
INITIAL_SECTION = "HEAD"
FOOTER_LINES = (
    "// Section for ugly compressed binary Data",
    "// DON'T TOUCH THIS",
)
# Modulation slot lists legitimately repeat inside a section.
REPEATING_KEYS = frozenset({"#ms", "#mv"})
# Signatures of presets written by a broken serializer.
CORRUPTION_MARKERS = ("[object Object]", "undefined")

MAX_SAFE_INTEGER = 2**53 - 1

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_BINARY_MARKER_RE = re.compile(
    re.escape(FOOTER_LINES[0]) + r"[ \t]*\r?\n" + re.escape(FOOTER_LINES[1])
)


def is_numeric(value: object) -> bool:
    """Return True for finite numbers and plain decimal number strings."""

    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not _NUMBER_RE.match(text):
        return False
    return math.isfinite(float(text))


def is_int(value: object) -> bool:
    """Return True when ``value`` is numeric, integral and within 2**53 - 1."""

    if not is_numeric(value):
        return False
    if isinstance(value, int):
        return abs(value) <= MAX_SAFE_INTEGER
    number = float(value.strip()) if isinstance(value, str) else float(value)
    return number.is_integer() and abs(number) <= MAX_SAFE_INTEGER


def classify_value(text: str) -> Tuple[ParamValue, ParamType]:
    if is_int(text):
        return int(float(text.strip())), ParamType.INTEGER
    if is_numeric(text):
        return float(text.strip()), ParamType.FLOAT
    return text, ParamType.STRING


def format_value(value: ParamValue) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _non_empty_lines(text: str) -> List[str]:
    lines: List[str] = []
    for raw in text.split("\n"):
        line = raw.rstrip("\r")
        if line.strip():
            lines.append(line)
    return lines


def get_preset_metadata(text: str) -> List[MetaEntry]:
    head, sep, _ = text.partition(HEADER_END)
    if not sep:
        return []

    header = head.lstrip()
    for bom in BYTE_ORDER_MARKS:
        if header.startswith(bom):
            header = header[len(bom) :].lstrip()
            break
    for marker in META_MARKERS:
        if header.startswith(marker):
            header = header[len(marker) :]
            break

    rows = _non_empty_lines(header)
    meta: List[MetaEntry] = []
    # A dangling key without its value line is dropped.
    for i in range(0, len(rows) - 1, 2):
        key = rows[i].strip().replace(":", "", 1)
        value = rows[i + 1].strip().replace("'", "")
        if ", " in value:
            meta.append(MetaEntry(key=key, value=value.split(", ")))
        else:
            meta.append(MetaEntry(key=key, value=value))
    return meta


class _ParamScan:
    """Accumulator carried across the parameter lines of one file."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        self.section = INITIAL_SECTION
        self.params: List[PresetParam] = []
        self.first_seen: Dict[str, int] = {}
        self.repeats: Dict[str, int] = {}

    def feed(self, key: str, raw_value: str) -> None:
        if key == SECTION_KEY:
            self.section = raw_value

        base_id = f"{self.section}/{key}"
        param_id = base_id
        if base_id in self.first_seen:
            count = self.repeats.get(base_id, 0) + 1
            if count == 1:
                first = self.params[self.first_seen[base_id]]
                first.id = f"{base_id}/0"
                if key not in REPEATING_KEYS:
                    logger.warning(
                        "duplicate parameter %s in %s", base_id, self.file_path
                    )
            self.repeats[base_id] = count
            param_id = f"{base_id}/{count}"
        else:
            self.first_seen[base_id] = len(self.params)

        value, param_type = classify_value(raw_value)
        self.params.append(
            PresetParam(
                id=param_id,
                key=key,
                section=self.section,
                value=value,
                index=len(self.params),
                type=param_type,
            )
        )


def get_preset_params(text: str, file_path: str = "") -> List[PresetParam]:
    _, sep, rest = text.partition(HEADER_END)
    if not sep:
        return []
    body = rest.split(BODY_END, 1)[0]

    scan = _ParamScan(file_path)
    for line in _non_empty_lines(body):
        key, eq, raw_value = line.partition("=")
        if not eq:
            continue
        scan.feed(key.strip(), raw_value)
    return scan.params


def get_preset_binary_section(text: str) -> str:
    match = _BINARY_MARKER_RE.search(text)
    if match is None:
        return ""
    return text[match.end() :].strip()


def _categories_from_meta(meta: List[MetaEntry]) -> List[str]:
    for entry in meta:
        if entry.key != "Categories":
            continue
        if isinstance(entry.value, list):
            return [value for value in entry.value if value]
        return [entry.value] if entry.value else []
    return []


def parse_preset(text: str, file_path: str, *, binary: bool = False) -> Preset:
    meta = get_preset_metadata(text)
    preset = Preset(
        file_path=file_path,
        preset_name=PurePosixPath(file_path).stem,
        categories=_categories_from_meta(meta),
        meta=meta,
        params=get_preset_params(text, file_path),
    )
    if binary:
        section = get_preset_binary_section(text)
        if section:
            preset.binary = section
    return preset


def serialize_preset(preset: Preset) -> str:
    lines: List[str] = ["/*@Meta", ""]
    for entry in preset.meta:
        value = ", ".join(entry.value) if isinstance(entry.value, list) else entry.value
        lines.append(f"{entry.key}:")
        lines.append(f"'{value}'")
        lines.append("")
    lines.append(HEADER_END)
    lines.append("")

    for param in preset.params:
        lines.append(f"{param.key}={format_value(param.value)}")

    lines.extend(["", "", ""])
    lines.extend(FOOTER_LINES)
    lines.append("")

    out = "\n".join(lines) + "\n"
    if preset.binary:
        out += preset.binary + "\n"
    return out


def is_valid_preset(preset: Preset) -> bool:
    if not preset.params or not preset.meta:
        return False
    for param in preset.params:
        value_text = str(param.value)
        for marker in CORRUPTION_MARKERS:
            if marker in value_text or marker in param.id:
                return False
    return True
