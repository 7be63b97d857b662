"""
MindCheck v1 Enrichment Orchestrator

ORDER (FIXED):

    1. Text analysis        required, blocking, never raced
    2. Audio extraction     only when audio is present, 6 s deadline  ┐ concurrent
    3. Visual extraction    only when frames are present, 4 s deadline ┘
    4. Fusion               over whatever succeeded
    5. Assembly             DashboardRecord with placeholders for absent modalities

INVARIANTS:
    - Audio/visual failures and timeouts degrade to Unavailable, never raise
    - A timed-out extraction is cancelled, not left running
    - Text failures propagate unless text_fallback is configured
    - Fusion failures always propagate; no partial score is returned
    - Raw media is never retained beyond the call
"""

import asyncio
import logging
import time

from mindcheck.analyzers.text import UNAVAILABLE_SUMMARY, TextAnalyzer, neutral_result
from mindcheck.assembly import assemble_record, new_check_in_id
from mindcheck.config import PipelineConfig
from mindcheck.contracts import Available, Extractor, ExtractionResult, Unavailable
from mindcheck.errors import EnrichmentError, ErrorCode
from mindcheck.extractors.audio import AudioFeatureExtractor
from mindcheck.extractors.visual import VisualFeatureExtractor
from mindcheck.fusion import FusionEngine
from mindcheck.models import (
    CapturedMedia,
    CheckinContext,
    CheckinRequest,
    EnrichmentResult,
    ModalityScore,
    TextAnalysis,
)
from mindcheck.utils import now_iso


logger = logging.getLogger(__name__)


_FAILURE_CODES = {
    "audio": ErrorCode.AUDIO_EXTRACTION_FAILED,
    "visual": ErrorCode.VISUAL_EXTRACTION_FAILED,
}


async def run_bounded(extractor: Extractor, media: CapturedMedia, timeout: float) -> ExtractionResult:
    """
    Race one extraction against its deadline.

    Returns:
        Available(features) on success, Unavailable(...) on any failure or
        timeout. The extraction task is cancelled when the deadline wins.
    """
    modality = extractor.contract.name
    try:
        features = await asyncio.wait_for(extractor.extract(media), timeout=timeout)
    except asyncio.TimeoutError:
        return Unavailable(modality, ErrorCode.TIMEOUT, f"{modality} extraction exceeded {timeout:g}s deadline")
    except EnrichmentError as e:
        return Unavailable(modality, e.code, e.message)
    except Exception as e:
        return Unavailable(modality, _FAILURE_CODES[modality], f"{modality} extraction failed: {e}")
    return Available(features)


class EnrichmentService:
    """
    Drive one check-in through text analysis, bounded extraction, fusion
    and assembly.

    Args:
        text_analyzer: Remote or lexicon TextAnalyzer
        audio_extractor: Audio extractor (None disables audio)
        visual_extractor: Visual extractor (None disables visual)
        fusion_engine: FusionEngine instance
        config: Deadlines and fallback policy
    """

    def __init__(
        self,
        text_analyzer: TextAnalyzer,
        audio_extractor: Extractor | None = None,
        visual_extractor: Extractor | None = None,
        fusion_engine: FusionEngine | None = None,
        config: PipelineConfig | None = None,
    ):
        self.text_analyzer = text_analyzer
        self.audio_extractor = audio_extractor
        self.visual_extractor = visual_extractor
        self.fusion_engine = fusion_engine or FusionEngine()
        self.config = config or PipelineConfig()

    @classmethod
    def from_config(cls, config: PipelineConfig, remote: bool = False) -> "EnrichmentService":
        """
        Wire the default collaborators for a configuration.

        Args:
            config: Pipeline configuration
            remote: Use the text-understanding service instead of the lexicon

        Raises:
            ValueError: remote requested without a configured text service
        """
        from mindcheck.analyzers.lexicon import LexiconTextAnalyzer
        from mindcheck.analyzers.text import RemoteTextAnalyzer
        from mindcheck.providers.face import HttpFaceAttributeClient
        from mindcheck.providers.text import HttpTextUnderstandingClient

        if remote:
            if not config.text_service_url:
                raise ValueError("MINDCHECK_TEXT_SERVICE_URL must be set for remote text analysis")
            text_analyzer = RemoteTextAnalyzer(
                HttpTextUnderstandingClient(
                    config.text_service_url,
                    api_key=config.api_key,
                    timeout=config.http_timeout_s,
                )
            )
        else:
            text_analyzer = LexiconTextAnalyzer()

        visual_extractor = None
        if config.face_service_url:
            visual_extractor = VisualFeatureExtractor(
                HttpFaceAttributeClient(
                    config.face_service_url,
                    api_key=config.api_key,
                    timeout=config.http_timeout_s,
                    payload_warn_bytes=config.payload_warn_bytes,
                ),
                max_frames=config.max_frames,
            )

        return cls(
            text_analyzer=text_analyzer,
            audio_extractor=AudioFeatureExtractor(),
            visual_extractor=visual_extractor,
            config=config,
        )

    async def analyze_text(self, request: CheckinRequest, context: CheckinContext) -> tuple[TextAnalysis, list[dict]]:
        """
        Step 1. Returns the analysis and any warning from the fallback path.

        Raises:
            EnrichmentError: EMPTY_TRANSCRIPT always; TEXT_ANALYSIS_FAILED
                unless text_fallback is configured
        """
        try:
            return await self.text_analyzer.analyze(request.transcript, context), []
        except EnrichmentError as e:
            if e.code != ErrorCode.TEXT_ANALYSIS_FAILED or not self.config.text_fallback:
                raise
            logger.warning("Text analysis unavailable (%s), using neutral result: %s", e.code.value, e.message)
            return neutral_result(UNAVAILABLE_SUMMARY), [e.to_dict()]

    async def extract_modalities(self, media: CapturedMedia) -> dict[str, ExtractionResult]:
        """Steps 2-3. Run present modalities concurrently under their deadlines."""
        pending = {}
        results: dict[str, ExtractionResult] = {}

        if media.has_audio:
            if self.audio_extractor is None:
                results["audio"] = Unavailable("audio", ErrorCode.AUDIO_EXTRACTION_FAILED, "No audio extractor configured")
            else:
                pending["audio"] = run_bounded(self.audio_extractor, media, self.config.audio_timeout_s)

        if media.has_video:
            if self.visual_extractor is None:
                results["visual"] = Unavailable("visual", ErrorCode.VISUAL_EXTRACTION_FAILED, "No face service configured")
            else:
                pending["visual"] = run_bounded(self.visual_extractor, media, self.config.visual_timeout_s)

        outcomes = await asyncio.gather(*pending.values())
        results.update(zip(pending.keys(), outcomes))
        return results

    async def enrich(self, request: CheckinRequest) -> EnrichmentResult:
        """
        Enrich one check-in.

        Raises:
            EnrichmentError: EMPTY_TRANSCRIPT, TEXT_ANALYSIS_FAILED (without
                fallback), NO_VALID_MODALITIES or FUSION_FAILED
        """
        started_at = now_iso()
        started = time.perf_counter()

        check_in_id = request.check_in_id or new_check_in_id()
        context = request.context or CheckinContext(checkin_id=check_in_id)

        text, warnings = await self.analyze_text(request, context)

        media = CapturedMedia(
            audio=request.audio,
            video_frames=tuple(request.video_frames),
            duration=request.duration,
            start_time=request.start_time,
            end_time=request.end_time,
        )
        extracted = await self.extract_modalities(media)

        features = {}
        for modality, outcome in extracted.items():
            if isinstance(outcome, Available):
                features[modality] = outcome.features
            else:
                logger.warning("%s modality unavailable (%s): %s", modality, outcome.code.value, outcome.reason)
                warnings.append(outcome.to_warning())
        audio = features.get("audio")
        visual = features.get("visual")

        fusion = self.fusion_engine.fuse_checkin(text, audio, visual, request.baseline)

        record = assemble_record(
            user_id=request.user_id,
            text=text,
            fusion=fusion,
            audio=audio,
            visual=visual,
            check_in_id=check_in_id,
            timestamp=started_at,
        )

        modalities = {"text": ModalityScore(fusion.text_score, fusion.text_confidence)}
        if fusion.audio_score is not None:
            modalities["audio"] = ModalityScore(fusion.audio_score, fusion.audio_confidence)
        if fusion.visual_score is not None:
            modalities["visual"] = ModalityScore(fusion.visual_score, fusion.visual_confidence)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Check-in %s enriched in %.0f ms: score %d (%s, modalities %s)",
            check_in_id, elapsed_ms, fusion.score, fusion.fusion_method, "+".join(modalities),
        )

        return EnrichmentResult(
            record=record,
            audio_features=audio,
            visual_features=visual,
            modalities=modalities,
            warnings=tuple(warnings),
            started_at=started_at,
            processing_time_ms=elapsed_ms,
            transcript_length=len(request.transcript),
            duration=request.duration,
            session_id=request.session_id,
        )


def enrich_checkin(request: CheckinRequest, config: PipelineConfig | None = None, remote: bool = False) -> EnrichmentResult:
    """Synchronous convenience wrapper around EnrichmentService.enrich."""
    service = EnrichmentService.from_config(config or PipelineConfig(), remote=remote)
    return asyncio.run(service.enrich(request))
