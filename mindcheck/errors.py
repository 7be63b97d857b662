"""
MindCheck v1 Error Taxonomy.

Responsibilities:
- EnrichmentError exception carrying code, recoverability and component
- Error code constants
- Structured error/warning builder

Recoverability:
    NO_AUDIO_DATA, NO_VIDEO_DATA, EMPTY_TRANSCRIPT
        Missing required input. Caller error, not recoverable.
    AUDIO_EXTRACTION_FAILED, VISUAL_EXTRACTION_FAILED, REKOGNITION_NO_FACES
        Recoverable. The orchestrator degrades the modality to absent.
    TEXT_ANALYSIS_FAILED
        The external text call failed. Recoverable only by substituting the
        neutral text result; otherwise propagates.
    NO_VALID_MODALITIES, FUSION_FAILED
        Fusion layer. Not recoverable; the enrichment attempt fails.
"""

from enum import Enum


class ErrorCode(str, Enum):
    NO_AUDIO_DATA = "NO_AUDIO_DATA"
    NO_VIDEO_DATA = "NO_VIDEO_DATA"
    EMPTY_TRANSCRIPT = "EMPTY_TRANSCRIPT"
    AUDIO_EXTRACTION_FAILED = "AUDIO_EXTRACTION_FAILED"
    VISUAL_EXTRACTION_FAILED = "VISUAL_EXTRACTION_FAILED"
    REKOGNITION_NO_FACES = "REKOGNITION_NO_FACES"
    TEXT_ANALYSIS_FAILED = "TEXT_ANALYSIS_FAILED"
    NO_VALID_MODALITIES = "NO_VALID_MODALITIES"
    FUSION_FAILED = "FUSION_FAILED"
    TIMEOUT = "TIMEOUT"


COMPONENTS = frozenset({"audio", "visual", "text", "fusion"})


class EnrichmentError(Exception):
    """
    Raised when any pipeline component fails.

    Attributes:
        code: ErrorCode value
        recoverable: Whether the orchestrator may degrade instead of failing
        component: One of "audio", "visual", "text", "fusion" (or None)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = True,
        component: str | None = None,
    ):
        if component is not None and component not in COMPONENTS:
            raise ValueError(f"Unknown component: {component}")
        self.code = ErrorCode(code)
        self.recoverable = recoverable
        self.component = component
        super().__init__(message)

    @property
    def message(self) -> str:
        return self.args[0] if self.args else ""

    def to_dict(self) -> dict:
        return build_error(self.code, self.message, self.component)


def build_error(
    code: str,
    message: str,
    component: str | None,
    detail: dict | None = None,
) -> dict:
    """
    Build structured error object.

    Args:
        code: Error code (e.g., "AUDIO_EXTRACTION_FAILED")
        message: Human-readable error message
        component: Component where the error occurred
        detail: Optional additional details

    Returns:
        Structured error dictionary.
    """
    error: dict = {
        "code": str(ErrorCode(code).value),
        "message": message,
        "component": component,
    }
    if detail is not None:
        error["detail"] = detail
    return error
