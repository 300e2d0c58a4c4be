from __future__ import annotations

import random
from typing import Sequence


ADJECTIVES = (
    "Ancient", "Bitter", "Bold", "Brave", "Bright", "Broken", "Calm", "Cosmic",
    "Crooked", "Curious", "Dark", "Distant", "Dusty", "Eager", "Electric", "Endless",
    "Faded", "Fierce", "Frozen", "Gentle", "Giant", "Glassy", "Golden", "Hollow",
    "Humble", "Icy", "Lazy", "Liquid", "Lonely", "Lucky", "Magnetic", "Mellow",
    "Misty", "Noble", "Odd", "Quiet", "Restless", "Rusty", "Silent", "Sleepy",
    "Smooth", "Solar", "Static", "Strange", "Swift", "Tender", "Tiny", "Velvet",
    "Wild", "Wooden",
)

COLORS = (
    "Amber", "Aqua", "Azure", "Beige", "Black", "Blue", "Bronze", "Coral",
    "Crimson", "Cyan", "Emerald", "Gold", "Gray", "Green", "Indigo", "Ivory",
    "Jade", "Lavender", "Lime", "Magenta", "Maroon", "Olive", "Orange", "Peach",
    "Pink", "Plum", "Purple", "Red", "Rose", "Ruby", "Sapphire", "Scarlet",
    "Silver", "Teal", "Turquoise", "Violet", "White", "Yellow",
)

NAMES = (
    "Ada", "Alma", "Anton", "Ava", "Bruno", "Clara", "Dora", "Edith",
    "Elio", "Emil", "Esther", "Felix", "Frida", "Greta", "Hugo", "Ida",
    "Ingrid", "Iris", "Jonas", "Kai", "Lena", "Leo", "Luca", "Mara",
    "Milo", "Nina", "Nora", "Olga", "Oskar", "Paula", "Quinn", "Rosa",
    "Ruben", "Selma", "Theo", "Uma", "Vera", "Wanda", "Yara", "Zoe",
)

_DICTIONARIES = (ADJECTIVES, COLORS, NAMES)


def random_name(words: int = 3) -> str:
    """Return an ``Adjective Color Name`` style name (first ``words`` parts)."""

    if not 1 <= words <= len(_DICTIONARIES):
        raise ValueError(f"words must be in [1, {len(_DICTIONARIES)}]")
    return " ".join(random.choice(pool) for pool in _DICTIONARIES[:words])


def dictionary_name(pool: Sequence[str], words: int) -> str:
    return " ".join(random.choice(pool) for _ in range(words))
