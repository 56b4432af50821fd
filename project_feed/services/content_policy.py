"""
Content Policy Validator.

Detects attempts to share off-platform contact details in chat: phone
numbers, email addresses, messaging apps, social media handles, external
links and physical addresses. The feed controller only consumes the
allowed/reason result; flagging accounts is left to the backend.
"""

import logging
import re
from typing import Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ViolationType = Literal["phone", "email", "social_media", "messaging_app", "link", "address"]


class PolicyViolation(BaseModel):
    """One detected violation."""
    type: ViolationType
    matched: str
    position: int
    end_position: int
    pattern: Optional[str] = None


class PolicyResult(BaseModel):
    """Outcome of a content policy check."""
    allowed: bool
    reason: Optional[ViolationType] = None
    violations: list[PolicyViolation] = Field(default_factory=list)
    message: str = ""
    severity: Literal["low", "medium", "high"] = "low"
    sanitized: str = ""


# (type, pattern name, regexes); checked in this order
POLICY_PATTERNS: list[tuple[ViolationType, Optional[str], list[str]]] = [
    ("phone", None, [
        r"\+\d{1,4}[\s.-]?\(?\d{1,4}\)?[\s.-]?\d{1,4}[\s.-]?\d{1,4}[\s.-]?\d{1,4}",
        r"(?:\+91|\b0)?[\s.-]?\b[6-9]\d{4}[\s.-]?\d{5}\b",
        r"\(?\b[2-9]\d{2}\)?[\s.-]?\d{3}[\s.-]?\d{4}\b",
        r"\b\d{10,14}\b",
        r"\b\d(?:[\s.-]?\d){9,13}\b",
        r"(?:call|contact|phone|mobile|number|dial)[\s:]*(?:me\s*(?:at|on)?\s*)?\+?\d[\d\s.-]{7,}",
    ]),
    ("email", None, [
        r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
        r"[a-zA-Z0-9._%+-]+\s*(?:\[at\]|\(at\))\s*[a-zA-Z0-9.-]+\s*(?:\[dot\]|\(dot\))\s*[a-zA-Z]{2,}",
        r"[a-zA-Z0-9._%+-]+\s+@\s+[a-zA-Z0-9.-]+\s*\.\s*[a-zA-Z]{2,}",
    ]),
    ("messaging_app", "whatsapp", [
        r"whats\s*app",
        r"wa\.me/?\d*",
    ]),
    ("messaging_app", "telegram", [
        r"telegram",
        r"t\.me/[a-zA-Z0-9_]+",
    ]),
    ("messaging_app", None, [
        r"snapchat",
        r"discord(?:\.gg/[a-zA-Z0-9]+)?",
        r"\bsignal\s+app\b",
        r"(?:facebook|fb)\s*messenger",
    ]),
    ("social_media", "instagram", [
        r"instagram",
        r"\binsta\b",
        r"\big:",
    ]),
    ("social_media", None, [
        r"(?<![\w.@])@[a-zA-Z0-9_]{3,30}\b(?!\.[a-zA-Z])",
        r"(?:my|the)\s*(?:handle|username|user\s*name|twitter)\s*(?:is|:)\s*@?[a-zA-Z0-9_]{3,30}",
        r"\blinkedin\b",
    ]),
    ("link", None, [
        r"https?://[^\s<>\"{}|\\^`\[\]]+",
        r"www\.[^\s<>\"{}|\\^`\[\]]+",
        r"\b[a-zA-Z0-9-]+\.(?:com|org|net|io|co|in|edu|gov|info|biz|me|app|dev|xyz|online|site|tech)\b[^\s]*",
        r"(?:bit\.ly|goo\.gl|tinyurl\.com|ow\.ly|is\.gd|cutt\.ly|rb\.gy)/[\w-]+",
    ]),
    ("address", None, [
        r"\b(?:h\.?\s?no\.?|house\s*no\.?|flat\s*no\.?|door\s*no\.?|plot\s*no\.?)\s*[:\-]?\s*\d+",
        r"\b\d+[\s,/]+(?:[a-zA-Z]+\s+){0,4}(?:street|road|lane|avenue|nagar|colony|sector)\b",
        r"(?:my|the)\s*(?:address|location|home)\s*(?:is|:)\s*[A-Za-z0-9\s,.-]{15,}",
        r"\b(?:i\s+)?(?:stay|live|reside)\s+(?:at|in|near)\s+[\w\s,.-]{10,}",
    ]),
]

TYPE_DESCRIPTIONS: dict[str, str] = {
    "phone": "phone numbers",
    "email": "email addresses",
    "social_media": "social media handles",
    "messaging_app": "messaging app references",
    "link": "external links",
    "address": "physical addresses",
}

MIN_MATCH_LENGTH: dict[str, int] = {"phone": 7, "address": 5}


class ContentPolicyValidator:
    """
    Regex-based content policy check.

    Usage:
        validator = ContentPolicyValidator()
        result = validator.validate("call me on 98765 43210")
        if not result.allowed:
            print(result.reason, result.message)
    """

    def __init__(self, patterns: Optional[list[tuple[ViolationType, Optional[str], list[str]]]] = None):
        self.compiled = [
            (vtype, name, [re.compile(p, re.IGNORECASE) for p in regexes])
            for vtype, name, regexes in (patterns or POLICY_PATTERNS)
        ]

    def find_violations(self, content: str) -> list[PolicyViolation]:
        found: list[PolicyViolation] = []
        seen: set[tuple[int, str]] = set()
        for vtype, name, regexes in self.compiled:
            for regex in regexes:
                for match in regex.finditer(content):
                    text = match.group(0).strip()
                    if len(text) < MIN_MATCH_LENGTH.get(vtype, 3):
                        continue
                    key = (match.start(), vtype)
                    if key in seen:
                        continue
                    seen.add(key)
                    found.append(PolicyViolation(
                        type=vtype,
                        matched=text,
                        position=match.start(),
                        end_position=match.end(),
                        pattern=name,
                    ))
        found.sort(key=lambda v: v.position)
        return found

    def validate(self, content: str) -> PolicyResult:
        """
        Check a message before it is sent.

        Returns:
            PolicyResult; reason is the type of the earliest violation.
        """
        if not content or not content.strip():
            return PolicyResult(allowed=True, sanitized=content or "")

        normalized = content.strip()
        violations = self.find_violations(normalized)
        if not violations:
            return PolicyResult(allowed=True, sanitized=normalized)

        sanitized = normalized
        for violation in violations:
            sanitized = sanitized.replace(violation.matched, f"[{violation.type.upper()} REDACTED]")

        if len(violations) >= 4:
            severity = "high"
        elif len(violations) >= 2:
            severity = "medium"
        else:
            severity = "low"

        kinds = list(dict.fromkeys(v.type for v in violations))
        detected = ", ".join(TYPE_DESCRIPTIONS[k] for k in kinds)
        message = (
            f"For your safety, sharing {detected} is not allowed. "
            "Please use the in-app communication features."
        )

        logger.debug(f"Content policy flagged {len(violations)} violation(s): {kinds}")
        return PolicyResult(
            allowed=False,
            reason=violations[0].type,
            violations=violations,
            message=message,
            severity=severity,
            sanitized=sanitized,
        )
