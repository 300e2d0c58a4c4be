from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


ParamValue = Union[int, float, str]
MetaValue = Union[str, List[str]]


class ParamType(str, Enum):
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"

    @property
    def rank(self) -> int:
        return _TYPE_RANK[self]

    @property
    def is_numeric(self) -> bool:
        return self is not ParamType.STRING


_TYPE_RANK = {
    ParamType.INTEGER: 0,
    ParamType.FLOAT: 1,
    ParamType.STRING: 2,
}


def widen(current: ParamType, seen: ParamType) -> ParamType:
    """Return the more general of two parameter types (Integer < Float < String)."""

    return seen if seen.rank > current.rank else current


class KeepStable(str, Enum):
    ALWAYS = "always"
    STABLE_MODE = "stable-mode"


@dataclass
class MetaEntry:
    key: str
    value: MetaValue


@dataclass
class PresetParam:
    id: str
    key: str
    section: str
    value: ParamValue
    index: int
    type: ParamType


@dataclass
class Preset:
    """One synth patch: metadata, ordered parameters, optional binary blob.

    ``file_path`` is a virtual path tagged with the library origin
    (``/Local/...`` or ``/User/...``).  ``binary`` is kept as the opaque
    text that follows the footer marker; nothing in the generator looks
    inside it.
    """

    file_path: str
    preset_name: str
    categories: List[str] = field(default_factory=list)
    meta: List[MetaEntry] = field(default_factory=list)
    params: List[PresetParam] = field(default_factory=list)
    binary: Optional[str] = None

    def clone(self) -> "Preset":
        return copy.deepcopy(self)

    def param_by_id(self, param_id: str) -> PresetParam | None:
        for param in self.params:
            if param.id == param_id:
                return param
        return None

    def param_ids(self) -> set[str]:
        return {param.id for param in self.params}

    def meta_value(self, key: str) -> MetaValue | None:
        for entry in self.meta:
            if entry.key == key:
                return entry.value
        return None
