"""
MindCheck v1 Dashboard Assembler

Responsibilities:
- Combine text analysis, fusion output and extracted features into one
  DashboardRecord
- Substitute all-zero placeholder feature sets for absent modalities

INVARIANTS:
- The record shape is identical whether or not audio/visual were produced
- Score, direction, uncertainty and insights come from the FusionResult;
  summary, keywords, drivers, risk and mood come from the TextAnalysis
- confidence = 1 - fusion uncertainty
"""

import uuid

from mindcheck.models import (
    AudioFeatures,
    DashboardRecord,
    FusionResult,
    TextAnalysis,
    VisualFeatures,
)
from mindcheck.utils import now_iso


def new_check_in_id() -> str:
    return uuid.uuid4().hex


def assemble_record(
    user_id: str,
    text: TextAnalysis,
    fusion: FusionResult,
    audio: AudioFeatures | None = None,
    visual: VisualFeatures | None = None,
    check_in_id: str | None = None,
    timestamp: str | None = None,
) -> DashboardRecord:
    """
    Build the storage/display-ready record for one check-in.

    Args:
        user_id: Owner of the check-in
        text: Text analysis used for fusion
        fusion: Fused result including insights
        audio / visual: Extracted features, None when absent
        check_in_id: Explicit id (a random hex id is generated when None)
        timestamp: ISO-8601 timestamp (now, UTC, when None)
    """
    return DashboardRecord(
        check_in_id=check_in_id or new_check_in_id(),
        user_id=user_id,
        timestamp=timestamp or now_iso(),
        score=fusion.score,
        direction_of_change=fusion.direction_of_change,
        summary=text.summary,
        keywords=text.keywords,
        themes=text.themes,
        positive_drivers=text.positive_drivers,
        negative_drivers=text.negative_drivers,
        risk_level=text.risk_level,
        risk_reasons=text.risk_reasons,
        contributing_factors=fusion.contributing_factors,
        improvement_areas=fusion.improvement_areas,
        mood_score=text.mood_score,
        uncertainty=fusion.uncertainty,
        confidence=1.0 - fusion.uncertainty,
        audio_features=audio if audio is not None else AudioFeatures.placeholder(),
        visual_features=visual if visual is not None else VisualFeatures.placeholder(),
        text_analysis=text,
        fusion_result=fusion,
    )
