"""
Best-effort extraction of structured fields from a free-text radiology report,
plus a heuristic confidence score.

There is no grammar here. Each section is looked up by several label names,
each label by several pattern shapes; a miss yields None.
"""

import re
from dataclasses import dataclass, asdict, field
from typing import Optional, Protocol


@dataclass
class TumorDetails:
    tumor_type: Optional[str] = None
    size: Optional[str] = None
    location: Optional[str] = None
    grade: Optional[str] = None
    malignancy: Optional[str] = None


@dataclass
class ExtractedReport:
    assessment: Optional[str] = None
    abnormalities: Optional[str] = None
    diagnosis: Optional[str] = None
    recommendations: Optional[str] = None
    follow_up: Optional[str] = None
    tumor_details: TumorDetails = field(default_factory=TumorDetails)

    def to_dict(self) -> dict:
        return asdict(self)


class ReportExtractor(Protocol):
    def extract(self, text: str) -> ExtractedReport:
        ...


SECTION_LABELS: dict[str, tuple[str, ...]] = {
    "assessment": ("Tumor Detection and Segmentation", "Assessment"),
    "abnormalities": ("Tumor Classification", "Abnormalities"),
    "diagnosis": ("Tumor Characteristics", "Possible Diagnosis", "Diagnosis"),
    "recommendations": ("Treatment Recommendations", "Recommendations"),
    "follow_up": ("Follow-up Protocol", "Follow-up"),
}

_NEXT_HEADING = r"(?=\n[ \t]*(?:\d+\.[ \t]*)?\*\*|\n[ \t]*\d+\.[ \t]|\Z)"


def _label_patterns(label: str) -> list[re.Pattern]:
    name = re.escape(label)
    return [
        # **Label**: body     /     1. **Label**: body
        re.compile(rf"\*\*{name}\*\*[ \t]*:?(.*?){_NEXT_HEADING}", re.IGNORECASE | re.DOTALL),
        # 1. Label: body
        re.compile(rf"^[ \t]*\d+\.[ \t]*{name}[ \t]*:?(.*?){_NEXT_HEADING}", re.IGNORECASE | re.DOTALL | re.MULTILINE),
        # Label: body (up to a blank line)
        re.compile(rf"^[ \t]*{name}[ \t]*:(.*?)(?=\n[ \t]*\n|\Z)", re.IGNORECASE | re.DOTALL | re.MULTILINE),
    ]


_TUMOR_TYPE = re.compile(r"(?:tumou?r type|primary tumou?r(?: type)?|diagnosis)\s*:\s*([^.\n]+)", re.IGNORECASE)
_SIZE = re.compile(
    r"(?:size|dimensions|diameter)\s*:?\s*([^.\n]*?\d(?:[^.\n]|\.\d)*?(?:cm|mm|centimeters?|millimeters?)[^.\n]*)",
    re.IGNORECASE,
)
_LOCATION = re.compile(r"(?:location|located in|region|situated in)\s*:?\s*([^.\n]+)", re.IGNORECASE)
_GRADE = re.compile(r"(?:WHO\s+)?grade\s*:?\s*(IV|III|II|I|[1-4])\b", re.IGNORECASE)
_MALIGNANCY = re.compile(r"\b(benign|malignant|low[- ]grade|high[- ]grade)\b", re.IGNORECASE)


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    value = match.group(1).strip(" \t\n*-:")
    return value or None


class LabeledSectionExtractor:
    def __init__(self, labels: Optional[dict[str, tuple[str, ...]]] = None):
        self.labels = labels or SECTION_LABELS
        self._patterns = {
            section: [p for label in names for p in _label_patterns(label)]
            for section, names in self.labels.items()
        }

    def section(self, text: str, name: str) -> Optional[str]:
        for pattern in self._patterns.get(name, ()):
            match = pattern.search(text)
            if match:
                body = match.group(1).strip()
                if body:
                    return body
        return None

    def tumor_details(self, text: str) -> TumorDetails:
        grade = _first_group(_GRADE, text)
        return TumorDetails(
            tumor_type=_first_group(_TUMOR_TYPE, text),
            size=_first_group(_SIZE, text),
            location=_first_group(_LOCATION, text),
            grade=grade.upper() if grade else None,
            malignancy=_first_group(_MALIGNANCY, text),
        )

    def extract(self, text: str) -> ExtractedReport:
        text = text or ""
        return ExtractedReport(
            assessment=self.section(text, "assessment"),
            abnormalities=self.section(text, "abnormalities"),
            diagnosis=self.section(text, "diagnosis"),
            recommendations=self.section(text, "recommendations"),
            follow_up=self.section(text, "follow_up"),
            tumor_details=self.tumor_details(text),
        )


# Confidence heuristic

BASE_CONFIDENCE = 0.5
HIGH_CONFIDENCE_TERMS = ("clearly visible", "well-defined", "characteristic", "typical", "definitive", "pathognomonic")
MODERATE_CONFIDENCE_TERMS = ("likely", "probably", "suggests", "consistent with", "appears", "suspicious")
HEDGING_TERMS = ("possibly", "might", "questionable", "unclear", "indeterminate", "needs correlation")
INDICATOR_TERMS = ("tumor", "mass", "lesion", "neoplasm", "enhancement")
MEASUREMENT = re.compile(r"\d+(?:\.\d+)?\s*(?:cm|mm)\b", re.IGNORECASE)

HIGH_CONFIDENCE_WEIGHT = 0.25
MODERATE_CONFIDENCE_WEIGHT = 0.1
HEDGING_PENALTY = 0.2
MEASUREMENT_WEIGHT = 0.15
FEW_INDICATORS_WEIGHT = 0.1
MANY_INDICATORS_WEIGHT = 0.2


def score_confidence(text: str) -> float:
    """Heuristic confidence in [0, 1].

    Each component only depends on whether its terms are present, so adding a
    measurement can only raise the score and adding hedging can only lower it.
    """
    lowered = (text or "").lower()
    score = BASE_CONFIDENCE

    indicators = sum(1 for term in INDICATOR_TERMS if term in lowered)
    if indicators >= 3:
        score += MANY_INDICATORS_WEIGHT
    elif indicators >= 1:
        score += FEW_INDICATORS_WEIGHT

    if any(term in lowered for term in HIGH_CONFIDENCE_TERMS):
        score += HIGH_CONFIDENCE_WEIGHT
    if any(term in lowered for term in MODERATE_CONFIDENCE_TERMS):
        score += MODERATE_CONFIDENCE_WEIGHT
    if any(term in lowered for term in HEDGING_TERMS):
        score -= HEDGING_PENALTY
    if MEASUREMENT.search(lowered):
        score += MEASUREMENT_WEIGHT

    return max(0.0, min(1.0, round(score, 4)))
