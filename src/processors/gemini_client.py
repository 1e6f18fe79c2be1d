"""
GEMINI VISION CLIENT
====================

Appel distant unique: image du graphique + instruction → signal JSON.

Classification des échecs:
- HTTP 429 → RateLimited (QuotaExceeded si le message parle de quota)
- autre statut avec "quota" / RESOURCE_EXHAUSTED → QuotaExceeded
- autre statut non-2xx → TransportError (clé non pénalisée)
- erreur réseau / timeout → TransportError
- réponse 2xx hors schéma → MalformedResponse

La rotation des clés est faite par RequestOrchestrator, pas ici.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import aiohttp

from config import GEMINI_API_URL, GEMINI_GENERATION_CONFIG, REQUEST_TIMEOUT_SECONDS
from utils.logger import get_logger
from utils.api_guard import log_api_call

from src.api_pool.errors import (
    PoolError,
    RateLimited,
    QuotaExceeded,
    MalformedResponse,
    TransportError,
)
from src.models.signal_types import AnalysisResult, parse_analysis
from .chart_image import ChartImage

logger = get_logger("GEMINI_CLIENT")


# ============================
# Prompt
# ============================

ANALYSIS_PROMPT = """You are an expert in technical analysis for trading. Analyze this trading chart and provide:

1. SIGNAL: whether it is a BUY, SELL or NEUTRAL signal
2. CONFIDENCE: confidence level of the analysis (0-100)
3. ANALYSIS: detailed explanation of the technical analysis

Consider:
- Candlestick patterns
- Support and resistance levels
- Moving averages
- Volume
- Market trends
- Visible technical indicators

Answer ONLY in this JSON format:
{
  "signal": "BUY|SELL|NEUTRAL",
  "confidence": 0-100,
  "analysis": "your detailed analysis here"
}

Be precise and objective, and base the answer only on what you see in the chart."""


# ============================
# Client
# ============================

class GeminiVisionClient:
    """
    Gemini generateContent client for chart images

    Usage:
        client = GeminiVisionClient()
        result = await client.analyze_chart(api_key, image)
        await client.close()
    """

    def __init__(
        self,
        api_url: str = GEMINI_API_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        generation_config: Optional[Dict[str, Any]] = None,
        prompt: str = ANALYSIS_PROMPT,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.generation_config = generation_config or dict(GEMINI_GENERATION_CONFIG)
        self.prompt = prompt

        # HTTP session
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self):
        """Close HTTP session"""
        if self._session and not self._session.closed:
            await self._session.close()

    def build_request(self, image: ChartImage) -> Dict[str, Any]:
        """generateContent body: prompt + inline image"""
        return {
            "contents": [{
                "parts": [
                    {"text": self.prompt},
                    {
                        "inline_data": {
                            "mime_type": image.mime_type,
                            "data": image.to_base64(),
                        }
                    },
                ]
            }],
            "generationConfig": self.generation_config,
        }

    async def analyze_chart(self, api_key: str, image: ChartImage) -> AnalysisResult:
        """One remote call with the given key"""
        body = self.build_request(image)
        session = await self._get_session()

        t0 = time.time()
        try:
            async with session.post(self.api_url, params={"key": api_key}, json=body) as resp:
                status = resp.status
                payload = await self._read_json(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            latency_ms = (time.time() - t0) * 1000
            reason = str(e) or type(e).__name__
            log_api_call("POST", self.api_url, 0, latency_ms, key=api_key, error=reason)
            raise TransportError(f"Gemini request failed: {reason}") from e

        latency_ms = (time.time() - t0) * 1000
        log_api_call("POST", self.api_url, status, latency_ms, key=api_key)

        if not 200 <= status < 300:
            raise self.classify_error(status, payload)

        text = self.extract_text(payload)
        result = parse_analysis(text)
        logger.info(f"Chart analyzed: {result.signal.value} ({result.confidence}%)")
        return result

    @staticmethod
    async def _read_json(resp: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            data = await resp.json(content_type=None)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def classify_error(status: int, payload: Dict[str, Any]) -> PoolError:
        """Map a non-2xx response to the error taxonomy"""
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            error = {}

        message = str(error.get("message") or "")
        error_status = str(error.get("status") or "")
        is_quota = "quota" in message.lower()

        if status == 429:
            if is_quota:
                return QuotaExceeded(f"Quota exceeded (429): {message}")
            return RateLimited(f"429 - Rate limit exceeded{': ' + message if message else ''}")

        if is_quota or error_status == "RESOURCE_EXHAUSTED":
            return QuotaExceeded(f"Quota exceeded ({status}): {message}")

        return TransportError(
            f"Gemini API Error ({status}): {message or 'Unknown error'}",
            status=status,
        )

    @staticmethod
    def extract_text(payload: Dict[str, Any]) -> str:
        """Text of the first candidate"""
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not candidates:
            raise MalformedResponse("No analysis generated")

        try:
            parts = candidates[0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponse("Candidate without content parts")

        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text.strip():
            raise MalformedResponse("Candidate without text")
        return text
