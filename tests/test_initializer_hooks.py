import pytest

from profile_fusion.collaborators import InMemorySuggestionQueue, STATUS_APPROVED
from profile_fusion.domains import Domain
from profile_fusion.hooks import AutoSyncHooks
from profile_fusion.initializer import (
    SYSTEM_ASSESSOR, check_profiles_exist, initialize_all_profiles, initialize_missing_profiles, initial_profile,
)


def test_initialize_all_profiles(store, frozen_today):
    initialize_all_profiles(store, "s1")

    assert all(check_profiles_exist(store, "s1").values())
    academic = store.get_profile("s1", Domain.ACADEMIC)
    assert academic["primaryLearningStyle"] == "GÖRSEL"
    assert academic["overallMotivation"] == 5
    assert academic["assessedBy"] == SYSTEM_ASSESSOR
    assert academic["assessmentDate"] == "2024-05-15"
    assert store.get_profile("s1", Domain.SOCIAL_EMOTIONAL)["bullyingStatus"] == "YOK"
    assert store.get_profile("s1", Domain.RISK_FACTORS)["copingSkills"] == 5


def test_initialize_missing_profiles_only_creates_absent(store):
    store.upsert_profile(Domain.ACADEMIC, {**initial_profile(Domain.ACADEMIC, "s1"), "overallMotivation": 9})

    created = initialize_missing_profiles(store, "s1")

    assert "academic" not in created
    assert len(created) == 5
    assert store.get_profile("s1", Domain.ACADEMIC)["overallMotivation"] == 9
    assert initialize_missing_profiles(store, "s1") == []


@pytest.fixture
def queue():
    return InMemorySuggestionQueue()


@pytest.fixture
def hooks(queue):
    return AutoSyncHooks(queue)


def test_low_exam_score_is_high_priority(hooks, queue):
    hooks.on_exam_result_added({"id": "e1", "studentId": "s1", "examName": "Matematik", "score": 35})
    hooks.on_exam_result_added({"id": "e2", "studentId": "s1", "examName": "Fizik", "score": "notu yok"})

    low, unknown = queue.list_suggestions(student_id="s1")
    assert low["priority"] == "HIGH"
    assert low["suggestionType"] == "ACADEMIC_INSIGHT"
    assert unknown["priority"] == "LOW"


def test_serious_incident_is_critical(hooks, queue):
    hooks.on_behavior_incident_recorded({"studentId": "s1", "behaviorType": "Kavga", "severity": "Yüksek"})
    hooks.on_behavior_incident_recorded({"studentId": "s1", "behaviorType": "Geç kalma", "severity": "DÜŞÜK"})

    serious, minor = queue.list_suggestions(student_id="s1")
    assert serious["priority"] == "CRITICAL"
    assert serious["suggestionType"] == "INTERVENTION_PLAN"
    assert minor["priority"] == "MEDIUM"


def test_severity_and_mood_match_any_turkish_case(hooks, queue):
    hooks.on_behavior_incident_recorded({"studentId": "s1", "behaviorType": "Kavga", "severity": "Kritik"})
    hooks.on_behavior_incident_recorded({"studentId": "s2", "behaviorType": "Kavga", "severity": "KRİTİK"})
    hooks.on_self_assessment_completed({"studentId": "s3", "mood": "ÇOK_KÖTÜ", "energy": 2})

    priorities = [s["priority"] for s in queue.list_suggestions()]
    assert priorities == ["CRITICAL", "CRITICAL", "HIGH"]


def test_present_attendance_is_ignored(hooks, queue):
    assert hooks.on_attendance_recorded({"studentId": "s1", "status": "Var"}) is None
    assert len(queue) == 0
    hooks.on_attendance_recorded({"studentId": "s1", "status": "Yok", "date": "2024-05-14"})
    hooks.on_attendance_recorded({"studentId": "s1", "status": "Geç"})
    assert [s["priority"] for s in queue.list_suggestions()] == ["MEDIUM", "LOW"]


def test_group_session_creates_one_suggestion_per_student(hooks, queue):
    created = hooks.on_counseling_session_completed(
        {"id": "c1", "studentIds": ["s1", "s2"], "emotionalState": "Üzgün", "detailedNotes": "..."})
    assert len(created) == 2
    assert {s["studentId"] for s in queue.list_suggestions()} == {"s1", "s2"}
    assert all(s["priority"] == "HIGH" for s in queue.list_suggestions())


def test_other_hook_priorities(hooks, queue):
    hooks.on_meeting_note_added({"studentId": "s1", "type": "Bireysel", "note": "Not", "plan": "Haftaya takip"})
    hooks.on_parent_meeting_recorded({"studentId": "s1", "topics": "Devam", "outcomes": "Olumlu"})
    hooks.on_self_assessment_completed({"studentId": "s1", "mood": "Kötü", "energy": 3})
    assert [s["priority"] for s in queue.list_suggestions()] == ["HIGH", "MEDIUM", "HIGH"]


def test_failed_suggestion_does_not_raise(hooks, queue):
    assert hooks.on_exam_result_added({"examName": "Kimya", "score": 70}) is None
    assert hooks.on_survey_response_submitted({"id": "r1"}) is None
    assert len(queue) == 0


def test_every_source_has_a_handler(hooks):
    assert set(hooks.handlers()) == {
        "counseling_session", "survey_response", "exam_result", "behavior_incident",
        "meeting_note", "parent_meeting", "self_assessment", "attendance",
    }


def test_suggestion_review(queue):
    sid = queue.create_suggestion({"studentId": "s1", "source": "manual_input", "title": "Test"})
    reviewed = queue.review(sid, approved=True, reviewed_by="rehber")
    assert reviewed["status"] == STATUS_APPROVED
    assert reviewed["reviewedBy"] == "rehber"
    with pytest.raises(ValueError):
        queue.review(sid, approved=False)
    with pytest.raises(KeyError):
        queue.review("missing", approved=True)
