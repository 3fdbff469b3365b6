"""
Scan analysis proxy: scan id in, stored AI result out.

Steps run in order and stop at the first failure:
  oracle credentials -> scan lookup -> image load -> oracle call ->
  extraction + scoring -> insert ai_results row -> flag scan processed.

Nothing is written before the oracle has answered. The insert and the flag
update are two separate writes with no transaction around them; an already
processed scan is answered from its latest stored result instead of being
sent to the oracle again, unless `force` is set.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import structlog

from medportal.auth import Session
from medportal.config import Settings, get_settings
from medportal.exceptions import (
    AnalysisOracleFailure,
    AnalysisPersistenceFailure,
    PortalError,
    ScanNotFound,
)
from medportal.fixtures import DEMO_ANALYSIS, DEMO_SCANS, is_demo_user
from medportal.schemas.scan import ScanAnalysisResult
from medportal.services.report_parser import (
    ExtractedReport,
    LabeledSectionExtractor,
    ReportExtractor,
    score_confidence,
)
from medportal.services.vision_service import VisionOracle, build_oracle, build_prompt
from medportal.store import RecordStore

logger = structlog.get_logger(__name__)

NO_TUMOR = "No tumor detected"
NO_AREAS = "No specific areas of concern identified"
NO_RECOMMENDATIONS = "No specific recommendations provided"


@dataclass
class AnalysisOutcome:
    result: ScanAnalysisResult
    analysis: dict
    full_text: Optional[str] = None
    reused: bool = False


def map_result(scan: dict, report: ExtractedReport, confidence: float) -> ScanAnalysisResult:
    details = report.tumor_details
    return ScanAnalysisResult(
        scan_id=str(scan["id"]),
        patient_id=scan.get("patient_id"),
        diagnosis=details.tumor_type or report.diagnosis or NO_TUMOR,
        confidence_score=confidence,
        areas_of_concern=details.location or report.abnormalities or NO_AREAS,
        recommendations=report.recommendations or NO_RECOMMENDATIONS,
    )


def _result_from_row(row: dict) -> ScanAnalysisResult:
    return ScanAnalysisResult(
        id=str(row["id"]),
        scan_id=str(row["mri_scan_id"]),
        patient_id=row.get("patient_id"),
        diagnosis=row.get("diagnosis") or NO_TUMOR,
        confidence_score=float(row.get("confidence_score") or 0.0),
        areas_of_concern=row.get("areas_of_concern") or NO_AREAS,
        recommendations=row.get("recommendations") or NO_RECOMMENDATIONS,
    )


def _sniff_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:3] == b"GIF":
        return "image/gif"
    return "image/jpeg"


def demo_outcome(scan_id: str) -> AnalysisOutcome:
    scan = next((s for s in DEMO_SCANS if s["id"] == scan_id), {"id": scan_id, "patient_id": None})
    analysis = dict(DEMO_ANALYSIS)
    result = ScanAnalysisResult(
        scan_id=scan_id,
        patient_id=scan.get("patient_id"),
        diagnosis=analysis["diagnosis"],
        confidence_score=analysis["confidence_score"],
        areas_of_concern=analysis["abnormalities"],
        recommendations=analysis["recommendations"],
    )
    return AnalysisOutcome(result=result, analysis=analysis)


class ScanAnalysisService:
    def __init__(
        self,
        store: RecordStore,
        oracle: Optional[VisionOracle] = None,
        oracle_factory: Optional[Callable[[Settings], VisionOracle]] = None,
        extractor: Optional[ReportExtractor] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self._oracle = oracle
        self._oracle_factory = oracle_factory or build_oracle
        self.extractor = extractor or LabeledSectionExtractor()
        self._transport = transport

    def _resolve_oracle(self) -> VisionOracle:
        if self._oracle is None:
            self._oracle = self._oracle_factory(self.settings)
        return self._oracle

    async def analyze(self, scan_id: str, force: bool = False, session: Optional[Session] = None) -> AnalysisOutcome:
        if session is not None and is_demo_user(session):
            logger.info("scan_analysis_demo", scan_id=scan_id)
            return demo_outcome(scan_id)

        oracle = self._resolve_oracle()

        scan = await self.store.get("mri_scans", scan_id)
        if scan is None:
            raise ScanNotFound(f"Scan '{scan_id}' not found")

        if scan.get("ai_processed") and not force:
            previous = await self._latest_result(scan_id)
            if previous is not None:
                logger.info("scan_analysis_reused", scan_id=scan_id, result_id=previous.id)
                return AnalysisOutcome(result=previous, analysis={}, reused=True)

        image, mime_type = await self._load_image(scan.get("image_url") or "")
        log = logger.bind(scan_id=scan_id, oracle=oracle.name)
        log.info("scan_analysis_started", mime_type=mime_type, size=len(image))

        text = await oracle.describe(build_prompt(scan.get("scan_type")), image, mime_type)
        report = self.extractor.extract(text)
        confidence = score_confidence(text)
        result = map_result(scan, report, confidence)

        result.id = await self._persist(scan_id, result)
        log.info("scan_analysis_completed", result_id=result.id, confidence=confidence)

        analysis = report.to_dict()
        analysis["confidence_score"] = confidence
        return AnalysisOutcome(result=result, analysis=analysis, full_text=text)

    async def _latest_result(self, scan_id: str) -> Optional[ScanAnalysisResult]:
        rows = await self.store.select(
            "ai_results",
            eq={"mri_scan_id": scan_id},
            order_by=[("created_at", True)],
            limit=1,
        )
        return _result_from_row(rows[0]) if rows else None

    async def _load_image(self, url: str) -> tuple[bytes, str]:
        if url.startswith("data:"):
            header, _, payload = url.partition(",")
            mime_type = header[5:].split(";")[0] or "image/jpeg"
            try:
                return base64.b64decode(payload, validate=True), mime_type
            except (binascii.Error, ValueError) as e:
                raise AnalysisOracleFailure("Scan image could not be decoded") from e
        if not url:
            raise AnalysisOracleFailure("Scan has no image")
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.image_fetch_timeout_seconds,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("scan_image_fetch_failed", url=url, error=str(e))
            raise AnalysisOracleFailure("Scan image could not be fetched", {"url": url}) from e
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = _sniff_mime(response.content)
        return response.content, content_type

    async def _persist(self, scan_id: str, result: ScanAnalysisResult) -> str:
        try:
            row = await self.store.insert(
                "ai_results",
                {
                    "mri_scan_id": scan_id,
                    "patient_id": result.patient_id,
                    "diagnosis": result.diagnosis,
                    "confidence_score": result.confidence_score,
                    "areas_of_concern": result.areas_of_concern,
                    "recommendations": result.recommendations,
                },
            )
        except PortalError as e:
            logger.error("scan_analysis_persist_failed", scan_id=scan_id, step="insert", reason=e.reason)
            raise AnalysisPersistenceFailure("Failed to save analysis results", e.details) from e

        result_id = str(row["id"])
        try:
            updated = await self.store.update("mri_scans", scan_id, {"ai_processed": True})
        except PortalError as e:
            logger.error("scan_analysis_persist_failed", scan_id=scan_id, step="flag", result_id=result_id)
            raise AnalysisPersistenceFailure("Failed to update scan status", e.details, result_id=result_id) from e
        if updated is None:
            raise AnalysisPersistenceFailure("Scan disappeared before it could be flagged", result_id=result_id)
        return result_id
