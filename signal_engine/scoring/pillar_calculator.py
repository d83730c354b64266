# signal_engine/scoring/pillar_calculator.py
"""
Pillar Calculator
-----------------
Collapses the raw indicator mapping (id → 1..10) into one average per pillar.

    raw_average       = mean(observed member scores)      (5 when none observed)
    effective_average = 11 − raw_average  for observed reverse pillars (P6)
                      = raw_average       otherwise

An unobserved pillar contributes the midpoint whether or not it is reversed.

Scores outside 1..10, non-numeric values and ids that are not members of the
pillar are ignored. Inputs are never mutated.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from signal_engine.models.enumerations import PillarId
from signal_engine.scoring.rubric import MIDPOINT, PILLARS, SCALE_MAX, SCALE_MIN
from signal_engine.scoring.utils import coerce_decimal, mean


@dataclass
class PillarAverage:
    """Per-pillar aggregate for one scoring call."""
    pillar: PillarId
    observed_count: int
    raw_average: Decimal        # midpoint when observed_count == 0
    effective_average: Decimal  # after reversal
    reverse_scored: bool

    @property
    def observed(self) -> bool:
        return self.observed_count > 0


def normalize_indicators(indicators: Optional[Mapping[Any, Any]]) -> Dict[int, Decimal]:
    """
    Keep only valid observations: integer-like id in 1..27 and a numeric score
    within the 1..10 scale.
    """
    cleaned: Dict[int, Decimal] = {}
    for key, value in (indicators or {}).items():
        try:
            ind_id = int(key)
        except (TypeError, ValueError):
            continue
        if ind_id < 1 or ind_id > 27:
            continue
        score = coerce_decimal(value)
        if score is None or score < SCALE_MIN or score > SCALE_MAX:
            continue
        cleaned[ind_id] = score
    return cleaned


def observed_average(indicators: Mapping[int, Decimal], pillar: PillarId) -> Optional[Decimal]:
    """Raw mean over observed members, or None when the pillar is unobserved."""
    members = PILLARS[pillar].indicator_ids
    return mean(indicators[i] for i in members if i in indicators)


class PillarCalculator:
    """Compute raw and effective averages for all 7 pillars."""

    def calculate(self, indicators: Optional[Mapping[Any, Any]]) -> Dict[PillarId, PillarAverage]:
        cleaned = normalize_indicators(indicators)
        results: Dict[PillarId, PillarAverage] = {}

        for pillar_id, pillar in PILLARS.items():
            observed = [cleaned[i] for i in pillar.indicator_ids if i in cleaned]
            raw = mean(observed)
            if raw is None:
                # Unobserved pillars sit at the midpoint on both scales
                raw = effective = MIDPOINT
            elif pillar.reverse_scored:
                effective = (SCALE_MAX + SCALE_MIN) - raw
            else:
                effective = raw

            results[pillar_id] = PillarAverage(
                pillar=pillar_id,
                observed_count=len(observed),
                raw_average=raw,
                effective_average=effective,
                reverse_scored=pillar.reverse_scored,
            )

        return results
