"""Named tax regimes resolved to ordered tax rule lists."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ValidationFailure
from .models import TaxBase, TaxRule

DEFAULT_PRESETS: Dict[str, Tuple[TaxRule, ...]] = {
    "india": (
        TaxRule("CGST", 9, inclusive=True, base=TaxBase.NET_AFTER_DISCOUNT),
        TaxRule("SGST", 9, inclusive=True, base=TaxBase.NET_AFTER_DISCOUNT),
    ),
    # California example rate
    "usa": (TaxRule("Sales Tax", "8.25"),),
    "eu": (TaxRule("VAT", 20),),
    "uk": (TaxRule("VAT", 20),),
    # British Columbia example rates
    "canada": (TaxRule("GST", 5), TaxRule("PST", 7)),
    "australia": (TaxRule("GST", 10),),
}


class PresetRegistry:
    """Maps a preset name to an ordered tuple of tax rules."""

    def __init__(self, presets: Optional[Mapping[str, Iterable[TaxRule]]] = None) -> None:
        source = DEFAULT_PRESETS if presets is None else presets
        self._presets: Dict[str, Tuple[TaxRule, ...]] = {
            name: tuple(rules) for name, rules in source.items()
        }

    def register(self, name: str, rules: Iterable[TaxRule]) -> None:
        self._presets[name] = tuple(rules)

    def names(self) -> List[str]:
        return sorted(self._presets)

    def __contains__(self, name: str) -> bool:
        return name in self._presets

    def resolve(self, name: str, field: str = "config.taxPreset") -> Tuple[TaxRule, ...]:
        try:
            return self._presets[name]
        except KeyError:
            raise ValidationFailure(f"unknown tax preset '{name}'", field=field) from None


default_registry = PresetRegistry()
