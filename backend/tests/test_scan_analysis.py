import base64
import json
import time

import httpx
import pytest

from medportal.exceptions import (
    AnalysisConfigurationError,
    AnalysisOracleFailure,
    AnalysisPersistenceFailure,
    ScanNotFound,
    ServiceUnavailable,
)
from medportal.roles import Role
from medportal.services.scan_analysis_service import NO_RECOMMENDATIONS, NO_TUMOR, ScanAnalysisService
from medportal.services.vision_service import BedrockVisionOracle, GeminiVisionOracle, VisionOracle, build_oracle

from conftest import RaisingStore, make_session, make_settings

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
DATA_URL = "data:image/png;base64," + base64.b64encode(PNG).decode("ascii")

FINDINGS = """1. **Tumor Detection and Segmentation**:
   - A well-defined enhancing mass in the right temporal lobe.
   - Location: right temporal lobe

2. **Tumor Classification**:
   - Primary tumor type: Glioblastoma
   - Malignant

3. **Tumor Characteristics**:
   - Estimated size: 4.1 x 3.6 cm

4. **Treatment Recommendations**:
   - Urgent neurosurgical referral.
"""


class FakeOracle(VisionOracle):
    name = "fake"

    def __init__(self, text=FINDINGS, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def describe(self, prompt, image, mime_type="image/jpeg"):
        self.calls.append((prompt, image, mime_type))
        if self.error is not None:
            raise self.error
        return self.text


async def make_scan(store, image_url=DATA_URL, **values):
    patient = await store.insert("patients", {"name": "Jane Roe", "needs_scan": True})
    row = {
        "patient_id": patient["id"],
        "radiologist_id": "rad-1",
        "image_url": image_url,
        "scan_type": "Brain MRI T1",
        "scan_date": "2024-06-01",
    }
    row.update(values)
    return await store.insert("mri_scans", row)


async def results_for(store, scan_id):
    return await store.select("ai_results", eq={"mri_scan_id": scan_id})


async def test_missing_credential_fails_before_any_read_or_write():
    store = RaisingStore()
    service = ScanAnalysisService(store, settings=make_settings(gemini_api_key=""))
    with pytest.raises(AnalysisConfigurationError):
        await service.analyze("scan-1")
    assert store.calls == []


async def test_successful_analysis_writes_result_and_flags_scan(sqlite_store):
    scan = await make_scan(sqlite_store)
    oracle = FakeOracle()
    service = ScanAnalysisService(sqlite_store, oracle=oracle, settings=make_settings())

    outcome = await service.analyze(scan["id"])

    assert outcome.result.diagnosis == "Glioblastoma"
    assert outcome.result.areas_of_concern == "right temporal lobe"
    assert outcome.result.recommendations == "- Urgent neurosurgical referral."
    assert 0.0 <= outcome.result.confidence_score <= 1.0
    assert outcome.analysis["tumor_details"]["malignancy"] == "Malignant"
    assert outcome.full_text == FINDINGS

    prompt, image, mime_type = oracle.calls[0]
    assert "Brain MRI T1" in prompt
    assert image == PNG
    assert mime_type == "image/png"

    rows = await results_for(sqlite_store, scan["id"])
    assert [r["id"] for r in rows] == [outcome.result.id]
    assert rows[0]["patient_id"] == scan["patient_id"]
    assert (await sqlite_store.get("mri_scans", scan["id"]))["ai_processed"] is True


async def test_unstructured_reply_uses_defaults(sqlite_store):
    scan = await make_scan(sqlite_store)
    service = ScanAnalysisService(sqlite_store, oracle=FakeOracle("Image quality insufficient."), settings=make_settings())
    outcome = await service.analyze(scan["id"])
    assert outcome.result.diagnosis == NO_TUMOR
    assert outcome.result.recommendations == NO_RECOMMENDATIONS


async def test_oracle_failure_writes_nothing(sqlite_store):
    scan = await make_scan(sqlite_store)
    oracle = FakeOracle(error=AnalysisOracleFailure("AI analysis failed"))
    service = ScanAnalysisService(sqlite_store, oracle=oracle, settings=make_settings())

    with pytest.raises(AnalysisOracleFailure):
        await service.analyze(scan["id"])

    assert await results_for(sqlite_store, scan["id"]) == []
    assert (await sqlite_store.get("mri_scans", scan["id"]))["ai_processed"] is False


async def test_unknown_scan(sqlite_store):
    service = ScanAnalysisService(sqlite_store, oracle=FakeOracle(), settings=make_settings())
    with pytest.raises(ScanNotFound):
        await service.analyze("no-such-scan")


async def test_processed_scan_reuses_stored_result_unless_forced(sqlite_store):
    scan = await make_scan(sqlite_store)
    oracle = FakeOracle()
    service = ScanAnalysisService(sqlite_store, oracle=oracle, settings=make_settings())

    first = await service.analyze(scan["id"])
    second = await service.analyze(scan["id"])
    assert second.reused
    assert second.result.id == first.result.id
    assert len(oracle.calls) == 1

    forced = await service.analyze(scan["id"], force=True)
    assert not forced.reused
    assert len(oracle.calls) == 2
    assert len(await results_for(sqlite_store, scan["id"])) == 2


async def test_flag_update_failure_reports_inserted_result(sqlite_store, monkeypatch):
    scan = await make_scan(sqlite_store)

    async def broken_update(collection, record_id, values):
        raise ServiceUnavailable("connection reset")

    monkeypatch.setattr(sqlite_store, "update", broken_update)
    service = ScanAnalysisService(sqlite_store, oracle=FakeOracle(), settings=make_settings())

    with pytest.raises(AnalysisPersistenceFailure) as excinfo:
        await service.analyze(scan["id"])

    rows = await results_for(sqlite_store, scan["id"])
    assert excinfo.value.result_id == rows[0]["id"]


async def test_image_fetch_failure_is_an_oracle_failure(sqlite_store):
    scan = await make_scan(sqlite_store, image_url="https://images.example.org/scan.jpg")
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    oracle = FakeOracle()
    service = ScanAnalysisService(sqlite_store, oracle=oracle, settings=make_settings(), transport=transport)

    with pytest.raises(AnalysisOracleFailure):
        await service.analyze(scan["id"])
    assert oracle.calls == []
    assert await results_for(sqlite_store, scan["id"]) == []


async def test_image_fetched_over_http(sqlite_store):
    scan = await make_scan(sqlite_store, image_url="https://images.example.org/scan")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=PNG))
    oracle = FakeOracle()
    service = ScanAnalysisService(sqlite_store, oracle=oracle, settings=make_settings(), transport=transport)

    await service.analyze(scan["id"])
    assert oracle.calls[0][1:] == (PNG, "image/png")


@pytest.mark.parametrize(
    "session",
    [
        make_session(Role.RADIOLOGIST, is_demo=True),
        make_session(Role.RADIOLOGIST, "demo-radiologist-4"),
    ],
    ids=["demo-session", "demo-account"],
)
async def test_demo_session_gets_fixed_analysis_without_oracle(session):
    store = RaisingStore()
    oracle = FakeOracle()
    service = ScanAnalysisService(store, oracle=oracle, settings=make_settings())

    outcome = await service.analyze("demo-scan-2", session=session)

    assert outcome.result.confidence_score == 0.78
    assert outcome.result.patient_id == "demo-patient-2"
    assert oracle.calls == [] and store.calls == []


async def test_gemini_oracle_request_and_reply():
    seen = {}

    def handler(request):
        seen["key"] = request.url.params["key"]
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "No tumor."}]}}]})

    oracle = GeminiVisionOracle("k-123", "https://gemini.test", "gemini-1.5-flash", transport=httpx.MockTransport(handler))
    assert await oracle.describe("prompt", PNG, "image/png") == "No tumor."

    assert seen["key"] == "k-123"
    assert seen["path"] == "/v1beta/models/gemini-1.5-flash:generateContent"
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[1]["inline_data"]["mime_type"] == "image/png"
    assert base64.b64decode(parts[1]["inline_data"]["data"]) == PNG
    assert seen["body"]["generationConfig"]["temperature"] == 0.1


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"candidates": []}),
        httpx.Response(429, json={"error": {"message": "quota"}}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_gemini_oracle_failures(response):
    oracle = GeminiVisionOracle("k", "https://gemini.test", "m", transport=httpx.MockTransport(lambda r: response))
    with pytest.raises(AnalysisOracleFailure):
        await oracle.describe("prompt", PNG)


async def test_gemini_oracle_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    oracle = GeminiVisionOracle("k", "https://gemini.test", "m", transport=httpx.MockTransport(handler))
    with pytest.raises(AnalysisOracleFailure, match="timed out"):
        await oracle.describe("prompt", PNG)


def test_build_oracle_requires_credentials():
    with pytest.raises(AnalysisConfigurationError):
        build_oracle(make_settings(oracle_provider="gemini", gemini_api_key=""))
    with pytest.raises(AnalysisConfigurationError):
        build_oracle(make_settings(oracle_provider="bedrock"))
    with pytest.raises(AnalysisConfigurationError):
        build_oracle(make_settings(oracle_provider="carrier-pigeon"))
    assert isinstance(build_oracle(make_settings(gemini_api_key="k")), GeminiVisionOracle)


async def test_bedrock_oracle_sends_image_block():
    class FakeBedrock:
        def __init__(self):
            self.kwargs = None

        def converse(self, **kwargs):
            self.kwargs = kwargs
            return {"output": {"message": {"content": [{"text": "Findings: normal."}]}}}

    client = FakeBedrock()
    oracle = BedrockVisionOracle(make_settings(oracle_provider="bedrock"), client=client)

    assert await oracle.describe("prompt", PNG, "image/png") == "Findings: normal."
    image_block = client.kwargs["messages"][0]["content"][0]["image"]
    assert image_block == {"format": "png", "source": {"bytes": PNG}}


async def test_bedrock_oracle_times_out():
    class SlowBedrock:
        def converse(self, **kwargs):
            time.sleep(0.5)
            return {"output": {"message": {"content": [{"text": "late"}]}}}

    settings = make_settings(oracle_provider="bedrock", analysis_timeout_seconds=0.05)
    oracle = BedrockVisionOracle(settings, client=SlowBedrock())

    started = time.monotonic()
    with pytest.raises(AnalysisOracleFailure, match="timed out"):
        await oracle.describe("prompt", PNG, "image/png")
    assert time.monotonic() - started < 0.4
