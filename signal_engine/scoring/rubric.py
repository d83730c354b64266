"""
Reference Rubric - 7 Pillars / 27 Indicators
signal_engine/scoring/rubric.py

Static catalogue the scoring engine works against:
  - Indicator metadata (id, pillar, label, UI description)
  - Pillar definitions (members, default weight, reverse flag)
  - Hot-button indicator set (emotional triggers)
  - Diagnostic question lists per prospect type
  - Keyword-based prospect type detection

Scale: every indicator is scored 1–10; the neutral midpoint is 5.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple

from signal_engine.models.enumerations import PillarId, ProspectType

SCALE_MIN = Decimal("1")
SCALE_MAX = Decimal("10")
MIDPOINT = Decimal("5")


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Indicator:
    """A single scored micro-signal."""
    id: int
    pillar: PillarId
    label: str
    description: str


@dataclass(frozen=True)
class Pillar:
    """A weighted group of indicators."""
    id: PillarId
    name: str
    indicator_ids: Tuple[int, ...]
    default_weight: Decimal
    reverse_scored: bool = False


# ---------------------------------------------------------------------------
# PILLAR TABLE
#
# Pillar | Name                                  | Indicators | Weight | Reverse
# ───────┼───────────────────────────────────────┼────────────┼────────┼────────
# P1     | Perceived Spread (Pain & Desire Gap)  | 1–4        | 1.5    |
# P2     | Urgency                               | 5–8        | 1.0    |
# P3     | Decisiveness                          | 9–12       | 1.0    |
# P4     | Available Money                       | 13–16      | 1.5    |
# P5     | Responsibility & Ownership            | 17–20      | 1.0    |
# P6     | Price Sensitivity                     | 21–23      | 1.0    | yes
# P7     | Trust                                 | 24–27      | 1.0    |
# ---------------------------------------------------------------------------

PILLARS: Dict[PillarId, Pillar] = {
    PillarId.P1: Pillar(PillarId.P1, "Perceived Spread", (1, 2, 3, 4), Decimal("1.5")),
    PillarId.P2: Pillar(PillarId.P2, "Urgency", (5, 6, 7, 8), Decimal("1.0")),
    PillarId.P3: Pillar(PillarId.P3, "Decisiveness", (9, 10, 11, 12), Decimal("1.0")),
    PillarId.P4: Pillar(PillarId.P4, "Available Money", (13, 14, 15, 16), Decimal("1.5")),
    PillarId.P5: Pillar(PillarId.P5, "Responsibility & Ownership", (17, 18, 19, 20), Decimal("1.0")),
    PillarId.P6: Pillar(PillarId.P6, "Price Sensitivity", (21, 22, 23), Decimal("1.0"), reverse_scored=True),
    PillarId.P7: Pillar(PillarId.P7, "Trust", (24, 25, 26, 27), Decimal("1.0")),
}


def _indicator(id_: int, pillar: PillarId, label: str, description: str) -> Indicator:
    return Indicator(id=id_, pillar=pillar, label=label, description=description)


INDICATORS: Dict[int, Indicator] = {
    ind.id: ind
    for ind in [
        # ── P1 Perceived Spread ───────────────────────────────────────
        _indicator(1, PillarId.P1, "Pain Intensity", "How severe is the prospect's pain/problem?"),
        _indicator(2, PillarId.P1, "Pain Awareness", "Do they understand the root cause and consequences?"),
        _indicator(3, PillarId.P1, "Desire Clarity", "How specific is what they want instead?"),
        _indicator(4, PillarId.P1, "Desire Priority", "How important is solving this right now?"),
        # ── P2 Urgency ────────────────────────────────────────────────
        _indicator(5, PillarId.P2, "Time Pressure", "Is there a real deadline driving urgency?"),
        _indicator(6, PillarId.P2, "Cost of Delay", "What do they lose by waiting longer?"),
        _indicator(7, PillarId.P2, "Internal Timing", "Are they at a breaking point?"),
        _indicator(8, PillarId.P2, "Environmental Availability", "Are they ready/able to take action now?"),
        # ── P3 Decisiveness ───────────────────────────────────────────
        _indicator(9, PillarId.P3, "Decision Authority", "Are they the decision maker?"),
        _indicator(10, PillarId.P3, "Decision Style", "How quickly do they decide once convinced?"),
        _indicator(11, PillarId.P3, "Commitment to Decide", "How committed are they to a next step?"),
        _indicator(12, PillarId.P3, "Self-Permission", "Do they trust themselves to decide?"),
        # ── P4 Available Money ────────────────────────────────────────
        _indicator(13, PillarId.P4, "Resource Access", "Do they have access to money/resources?"),
        _indicator(14, PillarId.P4, "Resource Fluidity", "Can they reallocate money if needed?"),
        _indicator(15, PillarId.P4, "Investment Mindset", "Do they view it as investment vs cost?"),
        _indicator(16, PillarId.P4, "Resourcefulness", "Do they find ways when committed?"),
        # ── P5 Responsibility & Ownership ─────────────────────────────
        _indicator(17, PillarId.P5, "Problem Recognition", "Do they acknowledge their role vs blaming others?"),
        _indicator(18, PillarId.P5, "Solution Ownership", "Are they taking responsibility to change it?"),
        _indicator(19, PillarId.P5, "Locus of Control", "Do they believe they control outcomes?"),
        _indicator(20, PillarId.P5, "Desire vs Action Integrity", "Do their words match their actions?"),
        # ── P6 Price Sensitivity (reverse) ────────────────────────────
        _indicator(21, PillarId.P6, "Emotional Response to Spending", "Are they focused on price/discounts?"),
        _indicator(22, PillarId.P6, "Negotiation Reflex", "Do they question whether it's worth it?"),
        _indicator(23, PillarId.P6, "Structural Rigidity", "Are they comparing options to find cheaper?"),
        # ── P7 Trust ──────────────────────────────────────────────────
        _indicator(24, PillarId.P7, "ROI Ownership", "Do they doubt the solution will work?"),
        _indicator(25, PillarId.P7, "External Trust", "Do they ask for evidence, track record, guarantees?"),
        _indicator(26, PillarId.P7, "Internal Trust", "Do they hesitate to trust you/process/offer?"),
        _indicator(27, PillarId.P7, "Risk Tolerance", "Fear it won't work for them / risk of failure."),
    ]
}


# Indicators that surface as emotional triggers ("hot buttons")
HOT_BUTTON_IDS: FrozenSet[int] = frozenset(
    [1, 2, 3, 4, 5, 6, 7, 11, 12, 15, 16, 17, 18, 19, 20, 24, 25, 26, 27]
)


def default_weights() -> Dict[PillarId, Decimal]:
    """Default weight per pillar."""
    return {pid: p.default_weight for pid, p in PILLARS.items()}


# ---------------------------------------------------------------------------
# Diagnostic questions per prospect type
# ---------------------------------------------------------------------------

DIAGNOSTIC_QUESTIONS: Dict[ProspectType, List[str]] = {
    ProspectType.FORECLOSURE: [
        "How many days until your auction date?",
        "What is your loan balance versus current property value?",
        "How many months behind are you on payments?",
        "Why did this happen? (job loss, medical, divorce, etc.)",
        "Have you talked to your lender about options?",
        "Is your family still living in the property?",
        "What happens to you and your family if this goes to auction?",
        "Who else is involved in this decision?",
        "Have you listed the property with an agent or gotten other offers?",
    ],
    ProspectType.CREATIVE_SELLER_FINANCING: [
        "How many months behind are you on payments?",
        "What is your current loan balance and monthly payment?",
        "Why did you fall behind? (job loss, medical, divorce, business failure)",
        "Have you received any foreclosure notices? What date is the auction?",
        "Are there any other liens, judgments, or HOA issues on the property?",
        "Who else needs to be involved in this decision?",
        "What would happen if you lost this property?",
        "Have you tried listing with an agent or getting other offers?",
    ],
    ProspectType.DISTRESSED_LANDLORD: [
        "How long have you been a landlord?",
        "How many properties do you own?",
        "What is the current tenant situation? (problem tenants, vacancy, eviction)",
        "How much negative cash flow are you experiencing per month?",
        "What was the specific incident that made you say \"I'm done\"?",
        "What condition is the property in? Any deferred maintenance?",
        "Are you managing this yourself or using a property manager?",
        "Have you tried to fix this property or situation before? What happened?",
    ],
    ProspectType.PERFORMING_TIRED_LANDLORD: [
        "How long have you been in the landlord business?",
        "What is your current monthly cash flow on this property?",
        "What triggered you to consider selling now?",
        "How much time do you spend managing this property per month?",
        "What would you do with your time if you didn't have this property?",
        "Does your spouse/partner want you to sell?",
        "If you could trade the monthly income for total freedom today, would you?",
        "Have you calculated what your time is worth versus the rental income?",
    ],
    ProspectType.CASH_EQUITY_SELLER: [
        "What is your timeline for selling?",
        "Why are you selling right now?",
        "What is your bottom-line number to sell?",
        "Have you already purchased your next property or have a time-sensitive need?",
        "What other offers have you received?",
        "What would it take for you to commit today?",
        "Is there anyone else involved in this decision?",
        "Would you accept a slightly lower price for a guaranteed close in 7 days?",
    ],
}


def questions_for(prospect_type: Optional[ProspectType]) -> List[str]:
    """Diagnostic questions for a prospect type (foreclosure when unknown)."""
    return DIAGNOSTIC_QUESTIONS.get(prospect_type or ProspectType.FORECLOSURE,
                                    DIAGNOSTIC_QUESTIONS[ProspectType.FORECLOSURE])


# ---------------------------------------------------------------------------
# Prospect type detection (keyword cues, first match wins)
# ---------------------------------------------------------------------------

_FORECLOSURE_CUES = (
    "foreclosure", "auction", "behind on mortgage", "behind on payments",
    "default notice", "losing my home", "save my credit",
)
_LANDLORD_CUES = ("landlord", "rental")
_DISTRESSED_CUES = (
    "bleeding", "losing money", "costing me", "nightmare", "distressed", "bad tenant",
)
_TIRED_CUES = ("tired", "exhausted", "done", "retirement", "peace of mind", "weekends")
_SELLER_SPEED_CUES = ("fast", "quick", "speed", "certainty", "next deal", "investment")


def detect_prospect_type(transcript: str) -> ProspectType:
    """
    Guess the prospect type from keyword cues in the transcript.

    Falls back to creative seller financing when nothing matches.
    """
    text = (transcript or "").lower()

    if any(cue in text for cue in _FORECLOSURE_CUES):
        return ProspectType.FORECLOSURE

    is_landlord = any(cue in text for cue in _LANDLORD_CUES)
    if is_landlord and any(cue in text for cue in _DISTRESSED_CUES):
        return ProspectType.DISTRESSED_LANDLORD
    if is_landlord and any(cue in text for cue in _TIRED_CUES):
        return ProspectType.PERFORMING_TIRED_LANDLORD

    if "cash" in text or "equity" in text or (
        "seller" in text and any(cue in text for cue in _SELLER_SPEED_CUES)
    ):
        return ProspectType.CASH_EQUITY_SELLER

    return ProspectType.CREATIVE_SELLER_FINANCING
