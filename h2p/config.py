from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .policy import defaults_for_synth


FULLY_RANDOM_MODE = "fully_random"
RANDOMIZE_MODE = "randomize"
MERGE_MODE = "merge"

DEFAULT_AMOUNTS = {
    FULLY_RANDOM_MODE: 16,
    RANDOMIZE_MODE: 8,
    MERGE_MODE: 8,
}
DEFAULT_RANDOMNESS = 20
MAX_AMOUNT = 10000

_BOOL_FIELDS = ("stable", "dictionary", "creative", "debug")


@dataclass(frozen=True)
class GenerationConfig:
    """Options for one generation request.

    ``preset`` and ``merge`` hold selectors: a path substring, ``?`` or
    ``?substring`` for a random pick, and (merge only) ``*`` or
    ``*substring`` for every matching preset.
    """

    synth: Optional[str] = None
    amount: Optional[int] = None
    preset: Tuple[str, ...] = ()
    merge: Tuple[str, ...] = ()
    randomness: Optional[float] = None
    stable: bool = False
    binary: Optional[bool] = None
    category: Optional[str] = None
    author: Optional[str] = None
    favorites: Tuple[str, ...] = ()
    dictionary: bool = False
    creative: bool = False
    debug: bool = False

    @property
    def mode(self) -> str:
        if self.merge:
            return MERGE_MODE
        if self.preset:
            return RANDOMIZE_MODE
        return FULLY_RANDOM_MODE

    @property
    def effective_amount(self) -> int:
        if self.amount is not None:
            return self.amount
        return DEFAULT_AMOUNTS[self.mode]

    @property
    def effective_randomness(self) -> float:
        if self.randomness is None:
            return DEFAULT_RANDOMNESS
        return self.randomness

    @property
    def use_binary(self) -> bool:
        return bool(self.binary)

    def with_synth_defaults(self) -> "GenerationConfig":
        if self.binary is not None:
            return self
        return dataclasses.replace(self, binary=defaults_for_synth(self.synth).binary)


def _require_dict(value: object, *, where: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be an object")
    return value


def _int_in_range(value: object, *, where: str, low: int, high: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{where} must be an integer")
    if not (low <= value <= high):
        raise ValueError(f"{where} must be in [{low}, {high}]")
    return value


def _number(value: object, *, where: str) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"{where} must be a number")
    return value


def _optional_str(value: object, *, where: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ValueError(f"{where} must be a non-empty string when provided")
    return value


def _selectors(value: object, *, where: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, list):
        raise ValueError(f"{where} must be a string or an array of strings")
    out = []
    for idx, item in enumerate(items):
        if not isinstance(item, str) or not item:
            raise ValueError(f"{where}[{idx}] must be a non-empty string")
        out.append(item)
    return tuple(out)


def parse_generation_config(data: object) -> GenerationConfig:
    obj = _require_dict(data, where="config")

    known = {f.name for f in dataclasses.fields(GenerationConfig)}
    unknown = sorted(set(obj) - known)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")

    amount = None
    if obj.get("amount") is not None:
        amount = _int_in_range(obj["amount"], where="amount", low=1, high=MAX_AMOUNT)

    randomness = None
    if obj.get("randomness") is not None:
        randomness = _number(obj["randomness"], where="randomness")

    binary = obj.get("binary")
    if binary is not None and not isinstance(binary, bool):
        raise ValueError("binary must be a boolean")

    flags = {}
    for name in _BOOL_FIELDS:
        flag = obj.get(name, False)
        if not isinstance(flag, bool):
            raise ValueError(f"{name} must be a boolean")
        flags[name] = flag

    return GenerationConfig(
        synth=_optional_str(obj.get("synth"), where="synth"),
        amount=amount,
        preset=_selectors(obj.get("preset"), where="preset"),
        merge=_selectors(obj.get("merge"), where="merge"),
        randomness=randomness,
        binary=binary,
        category=_optional_str(obj.get("category"), where="category"),
        author=_optional_str(obj.get("author"), where="author"),
        favorites=_selectors(obj.get("favorites"), where="favorites"),
        **flags,
    )


def load_generation_config(path: Path | str) -> GenerationConfig:
    config_path = Path(path).expanduser().resolve()
    payload = json.loads(config_path.read_text(encoding="utf-8"))
    return parse_generation_config(payload)
