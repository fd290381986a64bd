from dataclasses import replace

from civicwatch.complaints.application import AdmissionService
from civicwatch.complaints.domain import Accepted, ExternalDecision, FallbackDecision, Rejected
from civicwatch.config import Actor, ComplaintStatus, DecisionSource, IssueCategory, Settings, Severity
from civicwatch.triage.application import ClassificationGateway
from civicwatch.triage.domain import GatewayOutcome
from civicwatch.triage.infrastructure import LLMClientAdapter

from conftest import T0, WINDOW, classification


async def test_low_confidence_rejected_and_nothing_stored(admission, gateway, repository, submission):
    gateway.outcome = GatewayOutcome(payload=classification(confidence=0.19))

    result = await admission.submit(submission)

    assert isinstance(result, Rejected)
    assert result.confidence_score == 0.19
    assert result.reason == "Submission does not appear to show a genuine civic issue"
    summary = await repository.summarize(now=T0, since=T0)
    assert summary.total == 0


async def test_confidence_at_floor_admitted(admission, gateway, submission):
    gateway.outcome = GatewayOutcome(payload=classification(confidence=0.2))

    result = await admission.submit(submission)

    assert isinstance(result, Accepted)
    assert result.complaint.confidence_score == 0.2


async def test_admitted_complaint_starts_at_level_zero(admission, repository, submission):
    result = await admission.submit(submission)

    stored = await repository.get_by_id(result.complaint.id)
    assert stored == result.complaint
    assert stored.status == ComplaintStatus.ANALYZED
    assert stored.escalation_level == 0
    assert stored.next_escalation_at == T0 + WINDOW
    assert stored.department == "Roads & Highways"
    assert stored.category == IssueCategory.POTHOLE
    assert stored.description == submission.description
    assert stored.version == 1
    assert isinstance(stored.agent_decision, ExternalDecision)
    assert stored.agent_decision.raw.confidence_score == 0.85


async def test_submission_forwarded_to_gateway(admission, gateway, submission):
    await admission.submit(submission)

    request, context = gateway.calls[0]
    assert request.description == submission.description
    assert context.title == submission.title
    assert context.latitude == submission.latitude


async def test_log_entries_on_external_decision(admission, complaint_service, submission):
    result = await admission.submit(submission)

    audit = await complaint_service.get_audit_log(result.complaint.id)
    assert [(entry.action, entry.actor) for entry in audit] == [
        ("submitted", Actor.CITIZEN),
        ("analyzed", Actor.SYSTEM),
    ]
    assert audit[1].details["source"] == "external"

    timeline = await complaint_service.get_timeline(result.complaint.id)
    assert len(timeline) == 1
    assert timeline[0].action == "ai_classification"
    assert timeline[0].message == (
        "Automated classification suggested department=Roads & Highways, severity=high."
    )


async def test_classifier_failure_applies_fallback(admission, gateway, complaint_service, submission):
    gateway.outcome = GatewayOutcome(failure_reason="classification timed out after 60s")

    result = await admission.submit(submission)

    assert isinstance(result, Accepted)
    complaint = result.complaint
    assert complaint.category == IssueCategory.OTHER
    assert complaint.severity == Severity.MEDIUM
    assert complaint.priority == 5
    assert complaint.confidence_score == 0.5
    assert complaint.department == "Public Works"
    assert isinstance(complaint.agent_decision, FallbackDecision)
    assert complaint.agent_decision.reason == "classification timed out after 60s"

    timeline = await complaint_service.get_timeline(complaint.id)
    assert [entry.action for entry in timeline] == ["ai_fallback"]
    assert timeline[0].message == (
        "Automated suggestion unavailable or invalid. System applied fallback defaults."
    )
    audit = await complaint_service.get_audit_log(complaint.id)
    assert audit[1].details["source"] == DecisionSource.FALLBACK.value


async def test_image_only_submission_uses_model_description(admission, submission):
    image_only = replace(submission, description="", image_base64="aGVsbG8=")

    result = await admission.submit(image_only)

    assert result.complaint.description == "Large pothole in the left lane."


async def test_missing_api_key_records_fallback(repository, policy_provider, clock, complaint_service, submission):
    adapter = LLMClientAdapter.from_settings(Settings(llm_api_key=None, mock_llm=False))
    admission = AdmissionService(
        repository, ClassificationGateway(adapter, timeout_seconds=1), policy_provider, clock=clock
    )

    result = await admission.submit(submission)

    assert isinstance(result, Accepted)
    decision = result.complaint.agent_decision
    assert isinstance(decision, FallbackDecision)
    assert not isinstance(decision, ExternalDecision)
    assert "not configured" in decision.reason
    assert result.complaint.description == submission.description
    timeline = await complaint_service.get_timeline(result.complaint.id)
    assert [entry.action for entry in timeline] == ["ai_fallback"]
