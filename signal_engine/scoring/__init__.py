"""
Deterministic scoring package.

Modules:
    rubric                -- indicator / pillar catalogue, hot buttons, questions
    utils                 -- Decimal helpers
    pillar_calculator     -- per-pillar averages with reversal
    readiness_calculator  -- weighted composite (Lubometer), bands, close blockers
    incoherence_engine    -- truth-index rule table
    text_similarity       -- dedup and evidence validation
"""
