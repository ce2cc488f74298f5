"""
PHI scrubbing around the suggestion generator.

Outbound text is tokenized before it can reach a prompt; structured bundles
are reduced to non-identifying fields; generated text is checked again on the
way back and any match is redacted.

Limitations: detection is regex based and best effort. It recognizes the
shapes listed in OUTBOUND_PATTERNS and nothing else, so callers should also
keep prompts to an allow-list of structural fields instead of passing free
text through wholesale.
"""

import itertools
import re
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic_core import to_jsonable_python

logger = structlog.get_logger(__name__)

REDACTED = "[REDACTED]"

STREET_TYPES = r"(?:Street|St|Avenue|Ave|Road|Rd|Lane|Ln|Drive|Dr|Court|Ct|Place|Pl)"

# Capitalised two-word sequences, except "<Word> Street"-style fragments which
# belong to the address pattern.
NAME_PATTERN = re.compile(rf"\b[A-Z][a-z]+ (?!{STREET_TYPES}\b)[A-Z][a-z]+\b")
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
# Australian mobile/landline, local (0XXXXXXXXX) or international (+61XXXXXXXXX),
# digits optionally separated by single spaces or hyphens.
PHONE_PATTERN = re.compile(r"(?:\+61|\b0)(?:[ -]?\d){9}\b")
ID_PATTERN = re.compile(r"\b(?:id|ID|Id)[:=]\s*\d+")
ADDRESS_PATTERN = re.compile(rf"\b\d+\s+[A-Za-z\s]+?{STREET_TYPES}\b")
ISO_DATE_PATTERN = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
PATIENT_ID_PATTERN = re.compile(r"Patient ID:\s*\d+", re.IGNORECASE)

# Order matters: earlier substitutions consume text later patterns would see.
OUTBOUND_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("PATIENT", NAME_PATTERN),
    ("EMAIL", EMAIL_PATTERN),
    ("PHONE", PHONE_PATTERN),
    ("ID", ID_PATTERN),
    ("ADDRESS", ADDRESS_PATTERN),
)

INBOUND_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("patient_id", PATIENT_ID_PATTERN),
    ("name", NAME_PATTERN),
    ("email", EMAIL_PATTERN),
    ("phone", PHONE_PATTERN),
    ("id", ID_PATTERN),
    ("address", ADDRESS_PATTERN),
    ("date", ISO_DATE_PATTERN),
)

# App feature names that look like "Firstname Lastname" to NAME_PATTERN.
DEFAULT_ALLOWED_PHRASES: frozenset[str] = frozenset(
    {
        "Care Plan",
        "Daily Self",
        "Diet Logistics",
        "Food Database",
        "Health Snapshots",
        "Inspiration Machine",
        "Keep Going",
        "Motivational Image",
        "Progress Milestones",
    }
)


@dataclass
class DeidentifiedText:
    """Scrubbed text plus the token map used to produce it."""

    content: str
    token_map: dict[str, str] = field(default_factory=dict, repr=False)


@dataclass
class ResponseValidation:
    """Outcome of checking generated text for leaked identifiers."""

    is_valid: bool
    sanitized_response: str
    findings: list[str] = field(default_factory=list)


class PHISanitizer:
    """Deterministic, stateless PHI scrubbing. Safe to share between requests."""

    def __init__(self, allowed_phrases: frozenset[str] = DEFAULT_ALLOWED_PHRASES) -> None:
        self.allowed_phrases = allowed_phrases
        self.logger = logger.bind(component="phi_sanitizer")

    def deidentify(self, content: str) -> DeidentifiedText:
        """
        Replace identifiers in free text with typed tokens.

        Each match becomes PATIENT_n, EMAIL_n, PHONE_n, ID_n or ADDRESS_n, with n
        unique within this call. The token map is for traceability only and must
        never be used to re-identify text that left the process.
        """
        token_map: dict[str, str] = {}
        counter = itertools.count()

        for kind, pattern in OUTBOUND_PATTERNS:

            def _tokenize(match: re.Match[str], kind: str = kind) -> str:
                original = match.group(0)
                if kind == "PATIENT" and original in self.allowed_phrases:
                    return original
                token = f"{kind}_{next(counter)}"
                token_map[token] = original
                return token

            content = pattern.sub(_tokenize, content)

        if token_map:
            self.logger.debug("phi_tokens_replaced", token_count=len(token_map))
        return DeidentifiedText(content=content, token_map=token_map)

    def sanitize_data_bundle(self, data_bundle: dict[str, Any]) -> dict[str, Any]:
        """
        Structural counterpart of deidentify for patient data bundles.

        Returns a new bundle: patient name/email/phone dropped and id replaced by
        an opaque reference, score dates replaced by a placeholder, badges
        reduced to type, tier and a placeholder date. Other keys pass through.
        """
        sanitized: dict[str, Any] = to_jsonable_python(data_bundle)

        patient = sanitized.get("patient")
        if isinstance(patient, dict):
            for key in ("name", "email", "phone", "phone_number"):
                patient.pop(key, None)
            patient["id"] = "PATIENT_REFERENCE"

        if "scores" in sanitized:
            sanitized["scores"] = [
                {
                    "diet_score": score.get("diet_score"),
                    "exercise_score": score.get("exercise_score"),
                    "medication_score": score.get("medication_score"),
                    "date": "RECENT_DATE",
                }
                for score in sanitized["scores"] or []
            ]

        if "badges" in sanitized:
            sanitized["badges"] = [
                {
                    "type": badge.get("type", badge.get("badge_name")),
                    "tier": badge.get("tier"),
                    "earned_date": "ACHIEVEMENT_DATE",
                }
                for badge in sanitized["badges"] or []
            ]

        return sanitized

    def validate_response(self, response: str) -> ResponseValidation:
        """
        Check generated text for identifiers and redact whatever is found.

        The response is flagged invalid if any pattern matched. Matching is
        heuristic, so a valid result is not a guarantee that no PHI remains.
        """
        findings: list[str] = []
        sanitized = response

        for kind, pattern in INBOUND_PATTERNS:

            def _redact(match: re.Match[str], kind: str = kind) -> str:
                if kind == "name" and match.group(0) in self.allowed_phrases:
                    return match.group(0)
                if kind not in findings:
                    findings.append(kind)
                return REDACTED

            sanitized = pattern.sub(_redact, sanitized)

        return ResponseValidation(
            is_valid=not findings, sanitized_response=sanitized, findings=findings
        )
