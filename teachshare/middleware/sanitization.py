"""Content scanner: flags script injection, credential fishing, vote rings and bad links."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

from teachshare.logging_config import get_logger

logger = get_logger(__name__)


class ThreatLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


LEVEL_PRIORITY: Final[dict[ThreatLevel, int]] = {
    ThreatLevel.NONE: 0,
    ThreatLevel.LOW: 1,
    ThreatLevel.MEDIUM: 2,
    ThreatLevel.HIGH: 3,
    ThreatLevel.CRITICAL: 4,
}


class ThreatType(str, Enum):
    SCRIPT_INJECTION = "script_injection"
    CREDENTIAL_FISHING = "credential_fishing"
    VOTE_COORDINATION = "vote_coordination"
    SUSPICIOUS_URL = "suspicious_url"
    SPAM = "spam"


@dataclass
class ThreatDetection:
    threat_type: ThreatType
    threat_level: ThreatLevel
    pattern_matched: str
    context: str


@dataclass
class ScanResult:
    threat_level: ThreatLevel
    threats: list[ThreatDetection] = field(default_factory=list)
    scan_duration_ms: float = 0.0

    @property
    def is_safe(self) -> bool:
        return self.threat_level in (ThreatLevel.NONE, ThreatLevel.LOW)

    @property
    def threat_count(self) -> int:
        return len(self.threats)

    def blocking_threats(self) -> list[ThreatDetection]:
        return [t for t in self.threats if LEVEL_PRIORITY[t.threat_level] >= LEVEL_PRIORITY[ThreatLevel.HIGH]]


class PayloadSanitizer:
    """Scans the string values of a JSON payload against known abuse patterns."""

    SCRIPT_PATTERNS: Final[list[tuple[str, ThreatLevel]]] = [
        (r"<\s*script\b", ThreatLevel.CRITICAL),
        (r"<\s*iframe\b", ThreatLevel.HIGH),
        (r"\bon(load|error|click|mouseover)\s*=", ThreatLevel.HIGH),
        (r"document\.(cookie|location)", ThreatLevel.HIGH),
        (r"\beval\s*\(", ThreatLevel.MEDIUM),
    ]

    CREDENTIAL_PATTERNS: Final[list[tuple[str, ThreatLevel]]] = [
        (r"(send|share|give|tell)\s+(me\s+)?(your\s+)?(password|login|credentials?)", ThreatLevel.CRITICAL),
        (r"(verify|confirm)\s+your\s+(account|password)\s+(at|here|on)", ThreatLevel.HIGH),
        (r"-----BEGIN\s+(RSA\s+)?PRIVATE\s+KEY-----", ThreatLevel.CRITICAL),
    ]

    COORDINATION_PATTERNS: Final[list[tuple[str, ThreatLevel]]] = [
        (r"(upvote|vote\s+up)\s+(my|our)\s+(resources?|uploads?|proposals?)", ThreatLevel.HIGH),
        (r"vote\s+for\s+each\s+other", ThreatLevel.CRITICAL),
        (r"(i'?ll|we'?ll)\s+upvote\s+yours", ThreatLevel.CRITICAL),
        (r"voting\s+(bloc|block|ring|coalition)", ThreatLevel.CRITICAL),
        (r"(rig|fix|manipulate)\s+(the\s+)?(vote|proposal)", ThreatLevel.CRITICAL),
    ]

    URL_PATTERNS: Final[list[tuple[str, ThreatLevel]]] = [
        (r"javascript:", ThreatLevel.CRITICAL),
        (r"data:text/html", ThreatLevel.HIGH),
        (r"file://", ThreatLevel.HIGH),
        (r"https?://[^/\s]*localhost", ThreatLevel.HIGH),
        (r"https?://127\.0\.0\.1", ThreatLevel.HIGH),
        (r"https?://(bit\.ly|tinyurl\.com|t\.co)/", ThreatLevel.LOW),
    ]

    SPAM_PATTERNS: Final[list[tuple[str, ThreatLevel]]] = [
        (r"(buy|cheap)\s+(essays?|followers|likes)", ThreatLevel.MEDIUM),
        (r"(casino|crypto\s+giveaway)", ThreatLevel.MEDIUM),
    ]

    def __init__(self) -> None:
        groups = [
            (self.SCRIPT_PATTERNS, ThreatType.SCRIPT_INJECTION),
            (self.CREDENTIAL_PATTERNS, ThreatType.CREDENTIAL_FISHING),
            (self.COORDINATION_PATTERNS, ThreatType.VOTE_COORDINATION),
            (self.URL_PATTERNS, ThreatType.SUSPICIOUS_URL),
            (self.SPAM_PATTERNS, ThreatType.SPAM),
        ]
        self._compiled = [
            ([(re.compile(p, re.IGNORECASE | re.MULTILINE), level) for p, level in patterns], threat_type)
            for patterns, threat_type in groups
        ]

    def scan(self, payload: dict[str, Any]) -> ScanResult:
        start = time.perf_counter()
        text = self._extract_text(payload)

        threats: list[ThreatDetection] = []
        for patterns, threat_type in self._compiled:
            for pattern, level in patterns:
                for match in pattern.finditer(text):
                    lo = max(0, match.start() - 40)
                    hi = min(len(text), match.end() + 40)
                    threats.append(
                        ThreatDetection(
                            threat_type=threat_type,
                            threat_level=level,
                            pattern_matched=match.group()[:100],
                            context=text[lo:hi].replace("\n", " "),
                        )
                    )

        overall = max(
            (t.threat_level for t in threats),
            key=LEVEL_PRIORITY.__getitem__,
            default=ThreatLevel.NONE,
        )
        result = ScanResult(
            threat_level=overall,
            threats=threats,
            scan_duration_ms=(time.perf_counter() - start) * 1000,
        )

        if not result.is_safe:
            logger.info(
                "payload_threats_found",
                threat_level=overall.value,
                threat_count=result.threat_count,
            )
        return result

    def _extract_text(self, obj: Any, depth: int = 0) -> str:
        if depth > 10:
            return ""
        if isinstance(obj, str):
            return obj + "\n"
        if isinstance(obj, dict):
            return "".join(self._extract_text(v, depth + 1) for v in obj.values())
        if isinstance(obj, (list, tuple)):
            return "".join(self._extract_text(item, depth + 1) for item in obj)
        return ""


_sanitizer: PayloadSanitizer | None = None


def get_sanitizer() -> PayloadSanitizer:
    global _sanitizer
    if _sanitizer is None:
        _sanitizer = PayloadSanitizer()
    return _sanitizer
