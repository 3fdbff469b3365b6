"""
Vision-text oracle: image + instruction prompt in, free text out.

Two providers share one interface: Google Gemini over REST (httpx) and AWS
Bedrock `converse` (boto3). A missing credential is a configuration error
raised when the oracle is built, before any request is made.
"""

import asyncio
import base64
from typing import Optional

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from medportal.config import Settings
from medportal.exceptions import AnalysisConfigurationError, AnalysisOracleFailure

ANALYSIS_PROMPT = """You are an expert neuroradiologist specializing in brain tumor analysis and segmentation. Analyze this {scan_type} scan for brain tumors and provide a comprehensive assessment.

Provide a detailed analysis in the following format:

1. **Tumor Detection and Segmentation**:
   - Identify if any tumors are present
   - Describe the exact location and boundaries of any detected tumors
   - Provide segmentation details (which brain regions are affected)

2. **Tumor Classification**:
   - Primary tumor type (e.g., Glioblastoma, Meningioma, Astrocytoma, Metastatic lesion)
   - WHO grade if applicable
   - Malignancy level (benign/malignant)

3. **Tumor Characteristics**:
   - Estimated size in centimeters (length x width x height)
   - Enhancement patterns, surrounding edema and mass effect

4. **Treatment Recommendations**:
   - Surgical, radiation and chemotherapy considerations
   - Urgency level (immediate/routine)

5. **Follow-up Protocol**:
   - Recommended imaging intervals and additional studies

Be specific with measurements. If no tumor is detected, clearly state this and explain the normal findings."""


def build_prompt(scan_type: str) -> str:
    return ANALYSIS_PROMPT.format(scan_type=scan_type or "MRI")


class VisionOracle:
    name = "oracle"

    async def describe(self, prompt: str, image: bytes, mime_type: str = "image/jpeg") -> str:
        raise NotImplementedError


class GeminiVisionOracle(VisionOracle):
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        api_url: str,
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise AnalysisConfigurationError("Gemini API key not configured")
        self.api_key = api_key
        self.url = f"{api_url.rstrip('/')}/v1beta/models/{model}:generateContent"
        self.timeout = timeout
        self._transport = transport

    async def describe(self, prompt: str, image: bytes, mime_type: str = "image/jpeg") -> str:
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(image).decode("ascii")}},
                    ]
                }
            ],
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 2048},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, params={"key": self.api_key}, json=payload)
            data = response.json()
        except httpx.TimeoutException as e:
            raise AnalysisOracleFailure("AI analysis timed out") from e
        except (httpx.HTTPError, ValueError) as e:
            raise AnalysisOracleFailure("AI analysis failed", {"error": str(e)}) from e

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if response.status_code >= 400 or not candidates:
            error = data.get("error") if isinstance(data, dict) else None
            raise AnalysisOracleFailure("AI analysis failed", {"error": error, "status": response.status_code})
        try:
            parts = candidates[0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise AnalysisOracleFailure("AI analysis returned an unusable candidate") from e
        if not text.strip():
            raise AnalysisOracleFailure("AI analysis returned empty text")
        return text


class BedrockVisionOracle(VisionOracle):
    name = "bedrock"

    def __init__(self, settings: Settings, client=None):
        if not (settings.aws_access_key_id and settings.aws_secret_access_key) and client is None:
            raise AnalysisConfigurationError("AWS Bedrock credentials not configured")
        self.model_id = settings.aws_bedrock_model_id
        self.region = settings.aws_region
        self.timeout = settings.analysis_timeout_seconds
        self._settings = settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "bedrock-runtime",
                region_name=self.region,
                aws_access_key_id=self._settings.aws_access_key_id,
                aws_secret_access_key=self._settings.aws_secret_access_key,
                config=Config(read_timeout=self.timeout, retries={"max_attempts": 1}),
            )
        return self._client

    async def describe(self, prompt: str, image: bytes, mime_type: str = "image/jpeg") -> str:
        image_format = mime_type.split("/")[-1].replace("jpg", "jpeg")
        messages = [
            {
                "role": "user",
                "content": [
                    {"image": {"format": image_format, "source": {"bytes": image}}},
                    {"text": prompt},
                ],
            }
        ]
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.converse,
                    modelId=self.model_id,
                    messages=messages,
                    inferenceConfig={"temperature": 0.1, "maxTokens": 2048},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AnalysisOracleFailure("AI analysis timed out") from e
        except (BotoCoreError, ClientError) as e:
            raise AnalysisOracleFailure("AI analysis failed", {"error": str(e)}) from e
        try:
            content = response["output"]["message"]["content"]
            text = "".join(block.get("text", "") for block in content)
        except (KeyError, TypeError) as e:
            raise AnalysisOracleFailure("AI analysis returned an unusable candidate") from e
        if not text.strip():
            raise AnalysisOracleFailure("AI analysis returned empty text")
        return text


def build_oracle(settings: Settings) -> VisionOracle:
    provider = settings.oracle_provider.lower()
    if provider == "gemini":
        return GeminiVisionOracle(
            api_key=settings.gemini_api_key,
            api_url=settings.gemini_api_url,
            model=settings.gemini_model,
            timeout=settings.analysis_timeout_seconds,
        )
    if provider == "bedrock":
        return BedrockVisionOracle(settings)
    raise AnalysisConfigurationError(f"Unknown oracle provider '{settings.oracle_provider}'")
