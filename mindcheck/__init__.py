"""
MindCheck v1 — Multimodal Check-in Enrichment Pipeline

Converts a short wellbeing check-in (transcript, optional audio, optional
camera frames) into a single 0-100 score with uncertainty and insights.

Pipeline Order (fixed):
    1. Text analysis        (required, blocking)
    2. Audio extraction     (optional, bounded by deadline)
    3. Visual extraction    (optional, bounded by deadline, concurrent with 2)
    4. Fusion               (quality-weighted / equal / text-only)
    5. Assembly             (dashboard record, placeholders for absent modalities)

Invariants:
    - Every score is clamped to [0, 100]
    - Every confidence, uncertainty and ratio is clamped to [0, 1]
    - Raw audio and frames are never persisted
    - Audio/visual failures degrade to "absent"; text failures do not
"""

__version__ = "1.0.0.dev0"

ENRICHMENT_MODE = "checkin23_bounded"
