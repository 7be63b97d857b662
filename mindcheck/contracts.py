"""
MindCheck v1 Extractor Contracts

Formal extractor contracts, centralized media validation, and the tagged
result returned by bounded extraction.

This module provides:
- ModalityContract: Frozen, declarative contract for an extractor
- Extractor: Abstract base class for audio/visual extractors
- MediaValidator: Centralized input validation
- Available / Unavailable: Tagged extraction outcome

INVARIANTS:
- Contracts are frozen and immutable
- Validation happens before extraction
- Extractors validate through MediaValidator before any work
- Extractors do NOT mutate the captured media
- "Modality absent" is a return value, never implicit control flow
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from mindcheck.errors import EnrichmentError, ErrorCode, build_error
from mindcheck.models import CapturedMedia


F = TypeVar("F")


# =============================================================================
# ModalityContract — Frozen, Declarative
# =============================================================================


@dataclass(frozen=True)
class ModalityContract:
    """
    Frozen contract declaring what an extractor requires and produces.

    Attributes:
        name: Modality identifier ("audio" or "visual")
        requires: Media attribute that must be present ("audio" or "video_frames")
        missing_code: Error code raised when the required media is absent
        version: Semantic version for reproducibility
    """
    name: str
    requires: str
    missing_code: ErrorCode
    version: str


AUDIO_CONTRACT = ModalityContract(
    name="audio",
    requires="audio",
    missing_code=ErrorCode.NO_AUDIO_DATA,
    version="1.0.0",
)

VISUAL_CONTRACT = ModalityContract(
    name="visual",
    requires="video_frames",
    missing_code=ErrorCode.NO_VIDEO_DATA,
    version="1.0.0",
)


# =============================================================================
# Extractor — Abstract Base Class
# =============================================================================


class Extractor(ABC, Generic[F]):
    """
    Abstract base class for modality extractors.

    Subclasses must:
        - Define a `contract` class attribute of type ModalityContract
        - Implement `extract(media)` returning a freshly built feature set

    Rules:
        - Extractors are awaited exactly once per check-in
        - Unexpected exceptions are wrapped as recoverable EnrichmentError
    """

    contract: ModalityContract

    @abstractmethod
    async def extract(self, media: CapturedMedia) -> F:
        """
        Extract features from captured media.

        Args:
            media: Immutable captured media

        Returns:
            Frozen feature set for this modality.
        """
        ...


# =============================================================================
# MediaValidator — Centralized Input Validation
# =============================================================================


class MediaValidator:
    """
    Validates that captured media satisfies an extractor contract.

    Rules:
        - Validation happens BEFORE extractor.extract()
        - No side effects
        - Fail fast with a non-recoverable EnrichmentError
    """

    def validate(self, contract: ModalityContract, media: CapturedMedia) -> None:
        """
        Raises:
            EnrichmentError: missing_code of the contract when media is absent
        """
        value = getattr(media, contract.requires, None)
        if not value:
            raise EnrichmentError(
                f"No {contract.requires.replace('_', ' ')} provided",
                contract.missing_code,
                recoverable=False,
                component=contract.name,
            )


# =============================================================================
# Tagged Result
# =============================================================================


@dataclass(frozen=True)
class Available(Generic[F]):
    """Extraction succeeded within its deadline."""
    features: F

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable:
    """
    Extraction was skipped, failed, or missed its deadline.

    Attributes:
        modality: "audio" or "visual"
        code: Error code describing why
        reason: Human-readable explanation (internal, not user-facing)
    """
    modality: str
    code: ErrorCode
    reason: str

    @property
    def ok(self) -> bool:
        return False

    def to_warning(self) -> dict[str, Any]:
        return build_error(self.code, self.reason, self.modality)


ExtractionResult = Union[Available[Any], Unavailable]
