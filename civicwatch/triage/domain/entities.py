"""
Triage Domain Entities
======================

Value objects for complaint classification and escalation advisories.

Contains pure Python objects: the normalized classification payload, the
gateway outcome, and the prompt builders for both model calls.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional

from civicwatch.config import (
    REAL_THRESHOLD,
    UNCERTAIN_THRESHOLD,
    AuthenticityStatus,
    IssueCategory,
    Severity,
)


def derive_authenticity(confidence_score: float) -> AuthenticityStatus:
    """Band a confidence score into fake / uncertain / real."""
    if confidence_score < UNCERTAIN_THRESHOLD:
        return AuthenticityStatus.FAKE
    if confidence_score < REAL_THRESHOLD:
        return AuthenticityStatus.UNCERTAIN
    return AuthenticityStatus.REAL


@dataclass(frozen=True)
class ClassificationPayload:
    """
    Normalized classification of one complaint.

    Every field is already clamped to the accepted vocabulary, so the
    payload can be stored verbatim as the external decision's raw record.
    """
    description: str
    category: IssueCategory
    severity: Severity
    priority: int  # 1 to 10
    confidence_score: float  # 0.0 to 1.0
    authenticity_status: AuthenticityStatus
    reasoning: str = ""

    def __post_init__(self):
        if not 1 <= self.priority <= 10:
            raise ValueError("priority must be between 1 and 10")
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError("confidence_score must be between 0 and 1")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["category"] = self.category.value
        data["severity"] = self.severity.value
        data["authenticity_status"] = self.authenticity_status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ClassificationPayload":
        return cls(
            description=data["description"],
            category=IssueCategory(data["category"]),
            severity=Severity(data["severity"]),
            priority=int(data["priority"]),
            confidence_score=float(data["confidence_score"]),
            authenticity_status=AuthenticityStatus(data["authenticity_status"]),
            reasoning=data.get("reasoning", ""),
        )

    @classmethod
    def normalize(cls, data: dict, citizen_text: str = "") -> "ClassificationPayload":
        """
        Clamp a raw model response into a valid payload.

        Unknown categories map to `other`, unknown severities to `medium`;
        priority is rounded and clamped to 1..10, confidence to 0..1.
        """
        category_raw = str(data.get("category") or "").strip().lower()
        try:
            category = IssueCategory(category_raw)
        except ValueError:
            category = IssueCategory.OTHER

        severity_raw = str(data.get("severity") or "").strip().lower()
        try:
            severity = Severity(severity_raw)
        except ValueError:
            severity = Severity.MEDIUM

        priority = _coerce_number(data.get("priority"), 5)
        priority = min(10, max(1, int(round(priority))))

        confidence = _coerce_number(data.get("confidence_score"), 0.5)
        confidence = min(1.0, max(0.0, float(confidence)))

        description = str(data.get("description") or "").strip() or citizen_text

        return cls(
            description=description,
            category=category,
            severity=severity,
            priority=priority,
            confidence_score=confidence,
            authenticity_status=derive_authenticity(confidence),
            reasoning=str(data.get("reasoning") or ""),
        )


def _coerce_number(value: Any, default: float) -> float:
    # bool is an int subclass; a model answering `true` is not a score
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ClassificationRequest:
    """What the citizen submitted: free text and/or a base64 image."""
    description: str = ""
    image_base64: Optional[str] = None

    @property
    def image_data_url(self) -> Optional[str]:
        if not self.image_base64:
            return None
        if self.image_base64.startswith("data:image/"):
            return self.image_base64
        return f"data:image/jpeg;base64,{self.image_base64}"


@dataclass(frozen=True)
class ClassificationContext:
    """Submission metadata shown to the model alongside the payload."""
    title: str
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class GatewayOutcome:
    """Either a normalized payload or the reason classification failed."""
    payload: Optional[ClassificationPayload] = None
    failure_reason: Optional[str] = None

    def __post_init__(self):
        if (self.payload is None) == (self.failure_reason is None):
            raise ValueError("exactly one of payload or failure_reason must be set")

    @property
    def succeeded(self) -> bool:
        return self.payload is not None


class ClassificationPromptBuilder:
    """
    Builds prompts for complaint classification.

    All prompt wording lives here so the gateway only handles transport.
    """

    SYSTEM_PROMPT = f"""You are a classification system for civic issue reports submitted by citizens.

Analyze the report (image and/or text) and determine:
1. description: Factual description of the civic issue (2-3 sentences)
2. category: Must be one of: {", ".join(c.value for c in IssueCategory)}
3. severity: LOW | MEDIUM | HIGH | CRITICAL
4. priority: 1-10 score (10 being most urgent)
5. confidence_score: 0.0-1.0 indicating how confident you are this is a REAL civic issue
   - Below 0.2: Likely fake/spam/unrelated (random photos, screenshots, memes)
   - 0.2-0.6: Uncertain, may need manual review
   - Above 0.6: Confident this is a real civic issue
6. reasoning: One sentence justification

Respond ONLY in JSON format (no markdown, no commentary):
{{
    "description": "string",
    "category": "string",
    "severity": "LOW|MEDIUM|HIGH|CRITICAL",
    "priority": 5,
    "confidence_score": 0.85,
    "reasoning": "string"
}}"""

    @classmethod
    def build_prompt(cls, request: ClassificationRequest, context: ClassificationContext) -> str:
        """Build the user prompt from submission text and metadata."""
        lines = [
            f"Title provided by citizen: \"{context.title}\"",
            f"Location: {context.location_name}",
        ]
        if context.latitude is not None and context.longitude is not None:
            lines.append(f"GPS Coordinates: {context.latitude}, {context.longitude}")
        if request.description:
            lines.append(f"Citizen description: \"{request.description}\"")
        if request.image_base64:
            lines.append("A photo of the issue is attached.")
        lines.append("")
        lines.append("Classify this report (respond with JSON only):")
        return "\n".join(lines)

    @classmethod
    def build_messages(
        cls,
        request: ClassificationRequest,
        context: ClassificationContext
    ) -> list[dict]:
        """Chat messages, with the image as an image_url part when present."""
        prompt = cls.build_prompt(request, context)
        image_url = request.image_data_url
        if image_url:
            user_content: Any = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        else:
            user_content = prompt
        return [
            {"role": "system", "content": cls.SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]


class EscalationPromptBuilder:
    """Builds the one-sentence justification prompt for an escalation."""

    SYSTEM_PROMPT = """You are providing an advisory justification for a civic complaint escalation.
The escalation decision is ALREADY MADE by the system. You are only explaining why it is reasonable.
Respond with ONE sentence. No prefixes, no markdown."""

    @classmethod
    def build_messages(
        cls,
        department: str,
        severity: str,
        elapsed_seconds: float,
        status: str
    ) -> list[dict]:
        prompt = (
            f"DEPARTMENT: {department}\n"
            f"SEVERITY: {severity}\n"
            f"STATUS: {status}\n"
            f"ELAPSED_TIME_SECONDS: {round(elapsed_seconds)}"
        )
        return [
            {"role": "system", "content": cls.SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
