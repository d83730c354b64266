from enum import Enum


class PillarId(str, Enum):
    P1 = "P1"  # Perceived Spread (Pain & Desire Gap)
    P2 = "P2"  # Urgency
    P3 = "P3"  # Decisiveness
    P4 = "P4"  # Available Money
    P5 = "P5"  # Responsibility & Ownership
    P6 = "P6"  # Price Sensitivity (reverse scored)
    P7 = "P7"  # Trust


class ReadinessLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NO_GO = "no_go"


class RuleId(str, Enum):
    T1 = "T1"  # High Pain + Low Urgency
    T2 = "T2"  # High Desire + Low Decisiveness
    T3 = "T3"  # High Money + High Price Sensitivity
    T4 = "T4"  # Claims Authority + Needs Approval
    T5 = "T5"  # High Desire + Low Responsibility


class RuleSource(str, Enum):
    LOCAL = "local"  # Evaluated from indicator aggregates / transcript
    HINT = "hint"    # Supplied by the truth-index scoring task


class Coherence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


class ProspectType(str, Enum):
    FORECLOSURE = "foreclosure"
    CREATIVE_SELLER_FINANCING = "creative-seller-financing"
    DISTRESSED_LANDLORD = "distressed-landlord"
    PERFORMING_TIRED_LANDLORD = "performing-tired-landlord"
    CASH_EQUITY_SELLER = "cash-equity-seller"


class AdmitReason(str, Enum):
    STARTED = "started"              # Fragment admitted and a cycle started
    EMPTY = "empty"                  # Dropped: blank fragment
    HALLUCINATION = "hallucination"  # Dropped: speech-to-text artefact
    DUPLICATE = "duplicate"          # Dropped: repeat of the previous fragment
    IN_FLIGHT = "in_flight"          # Buffered: a cycle is already running
    THROTTLED = "throttled"          # Buffered: minimum interval not elapsed
    SHUTTING_DOWN = "shutting_down"  # Dropped: service is stopping
