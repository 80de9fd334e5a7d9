"""
Customization vocabulary and base-name splitting.

Most catalog entries are base products ("Latte"), so sizes, milks,
temperatures and sweetness levels are separated from an item description
before it is searched and carried on the line as preparation notes.
Some product names contain vocabulary words ("Hot Chocolate", "Large
Coffee"); the dispatcher tries the whole description against the catalog
before splitting it.
"""

import re
import string
from dataclasses import dataclass, field

MODIFIER_VOCABULARY: dict[str, list[str]] = {
    "size": [
        "extra large", "small", "medium", "large", "regular", "tall", "grande", "venti",
    ],
    "milk": [
        "oat milk", "soy milk", "almond milk", "skim milk", "whole milk", "no milk",
        "extra milk", "oat", "soy", "almond",
    ],
    "temperature": ["extra hot", "iced", "hot", "warm", "peng"],
    "sweetness": [
        "less sugar", "no sugar", "sugar free", "extra sweet", "half sweet",
        "siu dai", "kosong", "ga dai",
    ],
    "strength": ["extra shot", "double shot", "single shot", "decaf", "gao", "po"],
    "style": ["to go", "takeaway", "for here", "dabao", "with whipped cream", "no foam", "toasted"],
}

# Longest first so "oat milk" wins over "oat".
_ALL_MODIFIERS: list[str] = sorted(
    {term for terms in MODIFIER_VOCABULARY.values() for term in terms},
    key=len,
    reverse=True,
)

_FILLER_WORDS = {"a", "an", "the", "some", "one", "with", "and", "please", "of"}
_TOKEN_RE = re.compile(r"[\w']+", re.UNICODE)


@dataclass(frozen=True)
class ModifierSplit:
    base_name: str
    modifiers: list[str] = field(default_factory=list)

    @property
    def has_modifiers(self) -> bool:
        return bool(self.modifiers)

    def notes(self, extra: str = "") -> str:
        parts = list(self.modifiers)
        if extra and extra.strip():
            parts.append(extra.strip())
        return ", ".join(parts)


def split_modifiers(description: str) -> ModifierSplit:
    """Split a spoken item description into its base product name and modifiers.

    Examples:
        >>> split_modifiers("large oat milk latte")
        ModifierSplit(base_name='Latte', modifiers=['large', 'oat milk'])
    """
    tokens = _TOKEN_RE.findall(description)
    lowered = [token.casefold() for token in tokens]
    consumed = [False] * len(tokens)
    found: list[tuple[int, str]] = []

    for term in _ALL_MODIFIERS:
        words = term.split()
        width = len(words)
        for start in range(len(tokens) - width + 1):
            window = range(start, start + width)
            if any(consumed[i] for i in window):
                continue
            if lowered[start:start + width] == words:
                for i in window:
                    consumed[i] = True
                found.append((start, term))

    remaining = [
        token for index, token in enumerate(tokens)
        if not consumed[index] and lowered[index] not in _FILLER_WORDS
    ]
    found.sort()
    return ModifierSplit(
        base_name=string.capwords(" ".join(remaining)),
        modifiers=[term for _, term in found],
    )


def contains_modifier(term: str) -> bool:
    """True when a search term carries customization words alongside a product."""
    return split_modifiers(term).has_modifiers


def strip_filler(description: str) -> str:
    """Drop filler words but keep every other word, modifiers included.

    Examples:
        >>> strip_filler("a hot chocolate please")
        'Hot Chocolate'
    """
    tokens = [token for token in _TOKEN_RE.findall(description) if token.casefold() not in _FILLER_WORDS]
    return string.capwords(" ".join(tokens))
