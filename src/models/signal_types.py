"""
SIGNAL TYPES
============

Résultat d'analyse d'un graphique: BUY / SELL / NEUTRAL + confiance + texte.

Le modèle distant doit répondre avec un seul objet JSON:
    {"signal": "BUY|SELL|NEUTRAL", "confidence": 0-100, "analysis": "..."}
Toute réponse hors schéma lève MalformedResponse (jamais réessayée).
"""

import json
import re
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from src.api_pool.errors import MalformedResponse


class SignalType(Enum):
    """Trading signal read from a chart"""
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"

    def is_actionable(self) -> bool:
        """Check if signal suggests action"""
        return self in [SignalType.BUY, SignalType.SELL]


@dataclass
class AnalysisResult:
    """Structured answer of the vision model"""
    signal: SignalType
    confidence: float                 # 0 - 100
    analysis: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.value,
            "confidence": self.confidence,
            "analysis": self.analysis,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================================
# Parsing / validation
# ============================================================================

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> Dict[str, Any]:
    """Extract the JSON object from model text (handles markdown fences and prose)"""
    if not text or not text.strip():
        raise MalformedResponse("Empty response text")

    m = _JSON_BLOCK.search(text)
    if not m:
        raise MalformedResponse("Invalid response format: no JSON object found")

    try:
        data = json.loads(m.group())
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponse(f"Response is not a JSON object: {type(data).__name__}")
    return data


def validate_analysis(data: Dict[str, Any]) -> AnalysisResult:
    """Validate a decoded response against the signal schema"""
    raw_signal = data.get("signal")
    try:
        signal = SignalType(raw_signal)
    except ValueError:
        raise MalformedResponse(f"Invalid signal type: {raw_signal!r}")

    confidence = data.get("confidence")
    # bool is an int subclass, reject it explicitly
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise MalformedResponse(f"Invalid confidence value: {confidence!r}")
    if not 0 <= confidence <= 100:
        raise MalformedResponse(f"Confidence out of range [0, 100]: {confidence}")

    analysis = data.get("analysis", "")
    if not isinstance(analysis, str):
        raise MalformedResponse(f"Invalid analysis text: {type(analysis).__name__}")

    return AnalysisResult(signal=signal, confidence=confidence, analysis=analysis)


def parse_analysis(text: str) -> AnalysisResult:
    """Model text → validated AnalysisResult"""
    return validate_analysis(extract_json(text))
