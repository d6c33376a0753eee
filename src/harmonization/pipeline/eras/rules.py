"""Year correction rules for records of pre-cutoff collectors.

Every rule is a pure ``(str) -> str`` rewrite of the year's digits. Rules are
composed in a fixed priority order: each one sees the output of the previous
one, so ``2099`` becomes ``1999`` and then ``1899``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Sequence, Tuple

from harmonization.utils.helpers import normalize_name


@dataclass(frozen=True)
class PrefixRewrite:
    """Replace a leading digit run, keeping the remaining digits."""

    name: str
    prefix: str
    replacement: str

    def __call__(self, text: str) -> str:
        if text.startswith(self.prefix):
            return self.replacement + text[len(self.prefix) :]
        return text


@dataclass(frozen=True)
class ExactRewrite:
    """Replace a literal partial-date value."""

    name: str
    value: str
    replacement: str

    def __call__(self, text: str) -> str:
        return self.replacement if text == self.value else text


YearRule = PrefixRewrite | ExactRewrite

GENERIC_RULES: Tuple[YearRule, ...] = (
    PrefixRewrite("twentieth_to_nineteenth_century", "20", "19"),
    PrefixRewrite("nineties_to_1890s", "199", "189"),
    PrefixRewrite("eighties_to_1880s", "198", "188"),
    ExactRewrite("null_century", "0000", "1900"),
    ExactRewrite("bare_fifty_three", "53", "1953"),
    ExactRewrite("bare_zero", "0", "1900"),
)


def apply_rules(text: str, rules: Iterable[YearRule]) -> str:
    for rule in rules:
        text = rule(text)
    return text


def triggered_rules(text: str, rules: Iterable[YearRule]) -> List[str]:
    """Names of the rules that changed the value while composing *rules*."""

    fired: List[str] = []
    for rule in rules:
        rewritten = rule(text)
        if rewritten != text:
            fired.append(rule.name)
        text = rewritten
    return fired


class CollectorOverrideTable:
    """Allow-listed year rewrites for individually documented collectors.

    Keys are collector names matched the same way roster entries are (a
    normalised substring of the record's collector); values map a year prefix
    to its replacement.
    """

    def __init__(self, overrides: Mapping[str, Mapping[str, str]] | None = None) -> None:
        entries: List[Tuple[str, Tuple[PrefixRewrite, ...]]] = []
        for collector, rewrites in sorted((overrides or {}).items()):
            name = normalize_name(collector)
            rules = tuple(
                PrefixRewrite(f"{name}:{prefix}->{replacement}", prefix, replacement)
                for prefix, replacement in sorted(rewrites.items())
            )
            entries.append((name, rules))
        self._entries = tuple(entries)

    def rules_for(self, collector: str | None) -> Tuple[PrefixRewrite, ...]:
        if collector is None:
            return ()
        normalized = normalize_name(collector)
        matched: List[PrefixRewrite] = []
        for name, rules in self._entries:
            if name in normalized:
                matched.extend(rules)
        return tuple(matched)

    def __len__(self) -> int:
        return len(self._entries)


def rules_for_collector(
    collector: str | None,
    overrides: CollectorOverrideTable | None = None,
    generic: Sequence[YearRule] = GENERIC_RULES,
) -> Tuple[YearRule, ...]:
    """Generic rules followed by any collector-specific exceptions."""

    specific = overrides.rules_for(collector) if overrides is not None else ()
    return (*generic, *specific)


def correct_year_text(
    text: str,
    collector: str | None = None,
    overrides: CollectorOverrideTable | None = None,
) -> str:
    return apply_rules(text.strip(), rules_for_collector(collector, overrides))


__all__ = [
    "PrefixRewrite",
    "ExactRewrite",
    "YearRule",
    "GENERIC_RULES",
    "CollectorOverrideTable",
    "apply_rules",
    "triggered_rules",
    "rules_for_collector",
    "correct_year_text",
]
