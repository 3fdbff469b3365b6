from medportal.services.report_parser import LabeledSectionExtractor, score_confidence

REPORT = """1. **Tumor Detection and Segmentation**:
   - A well-defined enhancing mass is present in the left frontal lobe.
   - Location: left frontal lobe, adjacent to the falx

2. **Tumor Classification**:
   - Primary tumor type: Meningioma
   - WHO grade I
   - Benign

3. **Tumor Characteristics**:
   - Estimated size: 3.2 x 2.8 x 2.5 cm
   - Mild surrounding edema

4. **Treatment Recommendations**:
   - Neurosurgical consultation for resection.

5. **Follow-up Protocol**:
   - MRI with contrast in 3 months.
"""


def test_extracts_bold_numbered_sections():
    report = LabeledSectionExtractor().extract(REPORT)

    assert report.assessment.startswith("- A well-defined enhancing mass")
    assert "Meningioma" in report.abnormalities
    assert report.recommendations == "- Neurosurgical consultation for resection."
    assert report.follow_up == "- MRI with contrast in 3 months."


def test_extracts_tumor_details():
    details = LabeledSectionExtractor().extract(REPORT).tumor_details

    assert details.tumor_type == "Meningioma"
    assert details.size == "3.2 x 2.8 x 2.5 cm"
    assert details.location == "left frontal lobe, adjacent to the falx"
    assert details.grade == "I"
    assert details.malignancy == "Benign"


def test_plain_labels_are_found():
    text = "Assessment: Normal study.\n\nDiagnosis: No acute intracranial abnormality.\n\nRecommendations: None."
    report = LabeledSectionExtractor().extract(text)
    assert report.assessment == "Normal study."
    assert report.diagnosis == "No acute intracranial abnormality."
    assert report.recommendations == "None."


def test_missing_sections_are_none():
    report = LabeledSectionExtractor().extract("The image is too blurry to interpret.")
    assert report.assessment is None
    assert report.recommendations is None
    assert report.tumor_details.tumor_type is None
    assert report.tumor_details.size is None


def test_custom_labels():
    extractor = LabeledSectionExtractor({"assessment": ("Impression",)})
    assert extractor.section("Impression: clear", "assessment") == "clear"


def test_confidence_is_bounded():
    assert 0.0 <= score_confidence("") <= 1.0
    loaded = "clearly visible well-defined tumor mass lesion neoplasm enhancement likely 4 cm"
    assert score_confidence(loaded) == 1.0
    assert score_confidence("possibly unclear") == 0.3


def test_measurement_never_lowers_confidence():
    for base in ("", "possibly a lesion", "well-defined tumor", "likely mass, unclear margins"):
        assert score_confidence(base + " measuring 2.5 cm") >= score_confidence(base)


def test_hedging_never_raises_confidence():
    for base in ("", "tumor 12 mm", "clearly visible mass", "likely lesion"):
        assert score_confidence(base + " possibly") <= score_confidence(base)
