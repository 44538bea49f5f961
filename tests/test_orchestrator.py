import pytest

from profile_fusion.collaborators import InMemorySuggestionQueue, STATUS_PENDING
from profile_fusion.domains import Domain
from profile_fusion.orchestrator import (
    GENERIC_FAILURE, QUEUED_MESSAGE, ProfileUpdateOrchestrator, normalize_confidence, normalize_validation,
)


class StubValidator:
    def __init__(self, **overrides):
        self.result = {
            "is_valid": True,
            "suggested_domains": ["talents_interests"],
            "extracted_insights": {"hobi": "satranç"},
            "confidence": 0.9,
            "conflicts": [],
            "reasoning": "Anket cevapları ilgi alanlarını gösteriyor",
        }
        self.result.update(overrides)

    def validate(self, source, raw_data):
        return dict(self.result)


class BrokenValidator:
    def validate(self, source, raw_data):
        raise RuntimeError("extractor timeout")


class BrokenIdentity:
    def synthesize(self, student_id, data):
        raise RuntimeError("model unavailable")


def _request(**overrides):
    request = {"studentId": "s1", "source": "survey_response", "sourceId": "r-1", "rawData": {"hobi": "satranç"}}
    request.update(overrides)
    return request


@pytest.fixture
def queue():
    return InMemorySuggestionQueue()


def test_invalid_data_is_rejected(store, queue):
    orchestrator = ProfileUpdateOrchestrator(store, validator=StubValidator(is_valid=False, reasoning="veri boş"),
                                             queue=queue)
    result = orchestrator.process_data_update(_request())

    assert result["success"] is False
    assert result["message"] == "Veri doğrulama başarısız: veri boş"
    assert store.write_count == 0


def test_successful_update_logs_each_domain(store, queue):
    validator = StubValidator(
        suggested_domains=["talents_interests", "academic"],
        extracted_insights={"hobi": "satranç", "favorite_subject": "Matematik"},
    )
    orchestrator = ProfileUpdateOrchestrator(store, validator=validator, queue=queue)

    result = orchestrator.process_data_update(_request())

    assert result["success"] is True
    assert result["message"] == "Profil başarıyla güncellendi. 2 alan etkilendi."
    assert result["updated_domains"] == ["talents_interests", "academic"]
    assert result["identity_refreshed"] is True
    assert result["auto_resolved"] is True
    assert store.get_profile("s1", Domain.TALENTS_INTERESTS)["primaryInterests"] == ["satranç"]
    assert store.get_profile("s1", Domain.ACADEMIC)["strongSubjects"] == ["Matematik"]
    assert store.get_identity("s1")["studentId"] == "s1"

    logs = store.list_sync_logs("s1")
    assert [e["domain"] for e in logs] == ["talents_interests", "academic"]
    assert logs[0]["source"] == "survey_response"
    assert logs[0]["sourceId"] == "r-1"
    assert logs[0]["action"] == "updated"
    assert logs[0]["validationScore"] == 0.9


def test_logged_only_domain_is_counted_and_logged(store, queue):
    validator = StubValidator(suggested_domains=["behavioral"], extracted_insights={"dikkat_suresi": "kısa"})
    result = ProfileUpdateOrchestrator(store, validator=validator, queue=queue).process_data_update(_request())

    assert result["success"] is True
    assert result["updated_domains"] == ["behavioral"]
    assert result["message"] == "Profil başarıyla güncellendi. 1 alan etkilendi."
    assert store.get_profile("s1", Domain.BEHAVIORAL) is None
    logs = store.list_sync_logs("s1")
    assert len(logs) == 1
    assert logs[0]["domain"] == "behavioral"
    assert logs[0]["action"] == "logged"


def test_logged_only_domain_with_unmapped_keys_is_not_counted(store, queue):
    validator = StubValidator(suggested_domains=["family"], extracted_insights={"renk": "mavi"})
    result = ProfileUpdateOrchestrator(store, validator=validator, queue=queue).process_data_update(_request())

    assert result["updated_domains"] == []
    assert store.list_sync_logs() == []


def test_failed_domain_does_not_stop_others(store, queue):
    validator = StubValidator(
        suggested_domains=["academic", "astrology", "talents_interests"],
        extracted_insights={"hobi": "satranç", "favorite_subject": "Fizik"},
    )
    result = ProfileUpdateOrchestrator(store, validator=validator, queue=queue).process_data_update(_request())

    assert result["success"] is True
    assert result["updated_domains"] == ["academic", "talents_interests"]
    assert [f["domain"] for f in result["failed_domains"]] == ["astrology"]
    assert len(store.list_sync_logs("s1")) == 2


def test_unexpected_error_returns_generic_failure(store, queue):
    result = ProfileUpdateOrchestrator(store, validator=BrokenValidator(), queue=queue).process_data_update(_request())
    assert result["success"] is False
    assert result["message"] == GENERIC_FAILURE
    assert result["updated_domains"] == []


def test_low_confidence_is_queued_not_applied(store, queue):
    validator = StubValidator(suggested_domains=["academic"], extracted_insights={"favorite_subject": "Matematik"},
                              confidence=30)
    result = ProfileUpdateOrchestrator(store, validator=validator, queue=queue).process_data_update(_request())

    assert result["success"] is True
    assert result["queued_for_review"] is True
    assert result["message"] == QUEUED_MESSAGE
    assert result["validation"]["confidence"] == 0.3
    assert store.write_count == 0

    pending = queue.list_suggestions(student_id="s1", status=STATUS_PENDING)
    assert len(pending) == 1
    change = pending[0]["proposedChanges"][0]
    assert change["field"] == "academic.strongSubjects"
    assert change["currentValue"] is None
    assert change["proposedValue"] == ["Matematik"]


def test_high_conflict_is_escalated(store, queue):
    conflicts = [
        {"field": "bloodType", "newValue": "A+", "existingValue": "0+", "severity": "high"},
        {"field": "primaryInterests", "newValue": ["satranç"], "existingValue": ["müzik"], "severity": "medium"},
    ]
    result = ProfileUpdateOrchestrator(store, validator=StubValidator(conflicts=conflicts),
                                       queue=queue).process_data_update(_request())

    assert result["success"] is True
    assert result["auto_resolved"] is False
    assert [c["field"] for c in result["escalated_conflicts"]] == ["bloodType"]
    assert result["resolved_conflicts"][0]["severity"] == "low"
    suggestions = queue.list_suggestions(student_id="s1")
    assert len(suggestions) == 1
    assert suggestions[0]["priority"] == "HIGH"
    assert result["updated_domains"] == ["talents_interests"]


def test_identity_failure_is_not_fatal(store, queue):
    orchestrator = ProfileUpdateOrchestrator(store, validator=StubValidator(), identity=BrokenIdentity(), queue=queue)
    result = orchestrator.process_data_update(_request())

    assert result["success"] is True
    assert result["identity_refreshed"] is False
    assert result["updated_domains"] == ["talents_interests"]
    assert store.get_identity("s1") is None


def test_fallback_validator_applies_by_source(store):
    orchestrator = ProfileUpdateOrchestrator(store)
    result = orchestrator.process_data_update(_request(source="exam_result", rawData={"favorite_subject": "Fizik"}))

    assert result["success"] is True
    assert result["updated_domains"] == ["academic"]
    assert store.get_profile("s1", Domain.ACADEMIC)["strongSubjects"] == ["Fizik"]


def test_confidence_threshold_can_be_overridden(store, queue):
    orchestrator = ProfileUpdateOrchestrator(store, validator=StubValidator(confidence=0.8), queue=queue,
                                             min_confidence=0.9)
    assert orchestrator.process_data_update(_request())["queued_for_review"] is True


def test_normalizers():
    assert normalize_confidence(85) == 0.85
    assert normalize_confidence("0.4") == 0.4
    assert normalize_confidence(None) == 0.0
    assert normalize_confidence(-1) == 0.0
    v = normalize_validation({"isValid": True, "suggestedDomain": "academic", "extractedInsights": {"a": 1},
                              "confidence": 70})
    assert v["is_valid"] is True
    assert v["suggested_domains"] == ["academic"]
    assert v["extracted_insights"] == {"a": 1}
    assert v["confidence"] == 0.7
    assert normalize_validation({"isValid": "false"})["is_valid"] is False
    assert normalize_validation({"is_valid": "hayır"})["is_valid"] is False
    assert normalize_validation({"is_valid": "belki"})["is_valid"] is False
    assert normalize_validation({"isValid": "true"})["is_valid"] is True
    assert normalize_validation({"is_valid": "evet"})["is_valid"] is True


def test_string_false_validation_is_rejected(store, queue):
    orchestrator = ProfileUpdateOrchestrator(store, validator=StubValidator(is_valid="false"), queue=queue)
    result = orchestrator.process_data_update(_request())

    assert result["success"] is False
    assert store.write_count == 0


def test_escalated_field_is_held_until_review(store, queue):
    store.upsert_profile(Domain.HEALTH, {"studentId": "s1", "bloodType": "0+", "allergies": ["polen"]})
    conflicts = [{"field": "bloodType", "newValue": "A+", "existingValue": "0+", "severity": "high"}]
    validator = StubValidator(
        suggested_domains=["health"],
        extracted_insights={"kan_grubu": "A+", "chronic_disease": "astım"},
        conflicts=conflicts,
    )
    result = ProfileUpdateOrchestrator(store, validator=validator, queue=queue).process_data_update(_request())

    profile = store.get_profile("s1", Domain.HEALTH)
    assert profile["bloodType"] == "0+"
    assert profile["chronicDiseases"] == ["astım"]
    assert profile["allergies"] == ["polen"]
    assert result["updated_domains"] == ["health"]
    pending = queue.list_suggestions(student_id="s1", status=STATUS_PENDING)
    assert len(pending) == 1
    assert pending[0]["priority"] == "HIGH"
    assert pending[0]["proposedChanges"][0]["proposedValue"] == "A+"


def test_domain_with_only_held_fields_is_not_written(store, queue):
    store.upsert_profile(Domain.HEALTH, {"studentId": "s1", "bloodType": "0+"})
    conflicts = [{"field": "health.bloodType", "newValue": "A+", "existingValue": "0+", "severity": "high"}]
    validator = StubValidator(suggested_domains=["health"], extracted_insights={"kan_grubu": "A+"},
                              conflicts=conflicts)
    result = ProfileUpdateOrchestrator(store, validator=validator, queue=queue).process_data_update(_request())

    assert result["updated_domains"] == []
    assert store.get_profile("s1", Domain.HEALTH)["bloodType"] == "0+"
    assert store.list_sync_logs() == []
