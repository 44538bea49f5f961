from profile_fusion.aggregate import (
    behavior_score, calculate_aggregate_scores, health_wellness_score, academic_score, social_context_score,
    social_emotional_score,
)
from profile_fusion.domains import Domain, empty_profile
from profile_fusion.initializer import initialize_all_profiles, initial_profile
from profile_fusion.scoring import (
    UNIFIED_SCORE_KEYS, calculate_profile_completeness, calculate_unified_scores, compare_students,
    get_saved_aggregate_scores, save_aggregate_scores,
)

SCORE_KEYS = (
    "academic_score", "social_emotional_score", "talents_interests_score", "health_wellness_score",
    "behavior_score", "motivation_score", "risk_score", "protective_score", "overall_score",
)


def test_component_formulas():
    academic = {
        "strongSubjects": ["Matematik", "Fizik"], "weakSubjects": ["Tarih"], "strongSkills": ["analiz"],
        "overallMotivation": 8, "homeworkCompletionRate": 90,
    }
    # (15 + 8 + 40 + 45) / 4
    assert academic_score(academic) == 27.0
    assert health_wellness_score({"chronicDiseases": ["astım"], "allergies": ["polen"]}) == 89.0
    # 100 - 5 - 5*2 - 3*2
    assert behavior_score([{"severity": "ORTA", "frequency": "NADİR"}]) == 79.0
    assert social_emotional_score(initial_profile(Domain.SOCIAL_EMOTIONAL, "s1")) == 45.0


def test_categories_match_regardless_of_turkish_case():
    # 50 + 20 + 25
    assert social_context_score({"friendCircleSize": "GENİŞ", "socialRole": "LİDER"}) == 95.0
    assert social_context_score({"friendCircleSize": "geniş", "socialRole": "lider"}) == 95.0
    assert social_context_score({"friendCircleSize": "GENIŞ", "socialRole": "Lider"}) == 95.0
    assert social_context_score({"bullyingStatus": "her_ikisi", "socialRole": "izole"}) == 0.0
    assert behavior_score([{"severity": "orta", "frequency": "nadir"}]) == 79.0


def test_absent_profiles_are_neutral():
    scores = calculate_aggregate_scores()
    assert scores["academic_score"] == 0
    assert scores["social_emotional_score"] == 0
    assert scores["talents_interests_score"] == 0
    assert scores["health_wellness_score"] == 50
    assert scores["behavior_score"] == 100
    assert scores["motivation_score"] == 50
    assert scores["risk_score"] == 50
    assert scores["protective_score"] == 50


def test_scores_stay_within_bounds():
    many = [f"x{i}" for i in range(40)]
    extreme_high = calculate_aggregate_scores(
        academic={"strongSubjects": many, "strongSkills": many, "overallMotivation": 10, "homeworkCompletionRate": 100},
        talents_interests={"creativeTalents": many, "physicalTalents": many, "primaryInterests": many,
                           "weeklyEngagementHours": 80},
        motivation={"primaryMotivators": many, "careerAspirations": many, "goalClarityLevel": 10},
        risk_protective={"protectiveFactors": many, "familySupport": 10},
    )
    extreme_low = calculate_aggregate_scores(
        health={"chronicDiseases": many, "specialNeeds": "var", "physicalLimitations": "var"},
        behavior_incidents=[{"severity": "ÇOK_YÜKSEK", "frequency": "SÜREKLİ"}] * 30,
        risk_protective={"identifiedRiskFactors": many, "overallRiskLevel": 10, "academicRiskLevel": 10},
        social_emotional={"developingSocialSkills": many, "bullyingStatus": "HER_İKİSİ", "socialRole": "İZOLE"},
    )
    for scores in (extreme_high, extreme_low):
        for key in SCORE_KEYS:
            assert 0 <= scores[key] <= 100, key
            assert isinstance(scores[key], int)
    assert extreme_high["academic_score"] == 100
    assert extreme_low["health_wellness_score"] == 0
    assert extreme_low["behavior_score"] == 0


def test_student_without_incidents_has_full_behavior(store):
    initialize_all_profiles(store, "s1")
    scores = calculate_unified_scores(store, "s1")
    assert scores["behavior_score"] == 100
    assert scores["behavior_detail"]["incident_count"] == 0
    assert scores["behavior_detail"]["positive_behavior"] == 100
    assert calculate_profile_completeness(store, "s1")["domains"]["behavioral"] == 100


def test_identical_profiles_score_identically(store):
    for sid in ("s1", "s2"):
        initialize_all_profiles(store, sid)
        store.add_behavior_incident(sid, {"severity": "YÜKSEK", "frequency": "HAFTALIK"})

    a = calculate_unified_scores(store, "s1")
    b = calculate_unified_scores(store, "s2")
    assert tuple(a[k] for k in UNIFIED_SCORE_KEYS) == tuple(b[k] for k in UNIFIED_SCORE_KEYS)
    assert a["aggregate"]["overall_score"] == b["aggregate"]["overall_score"]


def test_completeness_of_initialized_student(store):
    initialize_all_profiles(store, "s1")
    report = calculate_profile_completeness(store, "s1")

    # academic 4/9, sel 11/13, talents 0, health 0, behavioral 100
    assert report["domains"] == {
        "academic": 44, "social_emotional": 85, "talents_interests": 0, "health": 0, "behavioral": 100,
    }
    assert report["overall"] == 46
    categories = [m["category"] for m in report["missing_fields"]]
    assert categories == ["Akademik Profil", "Sosyal-Duygusal Profil", "Yetenek ve İlgi Alanları", "Sağlık Profili"]


def test_absent_profiles_count_as_empty(store):
    report = calculate_profile_completeness(store, "nobody")
    assert report["domains"]["academic"] == 0
    assert report["overall"] == 20
    academic = report["missing_fields"][0]
    assert academic["domain"] == "academic"
    assert len(academic["fields"]) == 9


def test_completeness_is_monotonic(store):
    profile = empty_profile(Domain.ACADEMIC, "s1")
    steps = [
        ("strongSubjects", ["Matematik"]), ("weakSubjects", ["Tarih"]), ("primaryLearningStyle", "GÖRSEL"),
        ("overallMotivation", 7), ("homeworkCompletionRate", 80), ("studyHoursPerWeek", 5),
        ("strongSkills", ["analiz"]), ("weakSkills", ["yazım"]), ("secondaryLearningStyle", "İŞİTSEL"),
    ]
    previous = -1
    for field, value in steps:
        profile[field] = value
        store.upsert_profile(Domain.ACADEMIC, profile)
        pct = calculate_profile_completeness(store, "s1")["domains"]["academic"]
        assert pct >= previous
        previous = pct
    assert previous == 100


def test_emergency_contact_needs_name_and_phone(store):
    profile = empty_profile(Domain.HEALTH, "s1")
    profile["emergencyContact1Name"] = "Ayşe"
    store.upsert_profile(Domain.HEALTH, profile)
    missing = calculate_profile_completeness(store, "s1")["missing_fields"]
    health = next(m for m in missing if m["domain"] == "health")
    assert "Birinci acil durum kişisi" in health["fields"]


def test_incident_completeness(store):
    store.add_behavior_incident("s1", {"severity": "ORTA", "frequency": "NADİR"})
    report = calculate_profile_completeness(store, "s1")
    assert report["domains"]["behavioral"] == 29
    behavior = next(m for m in report["missing_fields"] if m["domain"] == "behavioral")
    assert behavior["category"] == "Davranış Kayıtları"
    assert len(behavior["fields"]) == 5


def test_saved_scores_are_upserted(store):
    initialize_all_profiles(store, "s1")
    save_aggregate_scores(store, "s1", calculate_unified_scores(store, "s1"))
    save_aggregate_scores(store, "s1", {"academic_score": 99, "last_updated": "2024-05-15T10:00:00"})

    saved = get_saved_aggregate_scores(store, "s1")
    assert saved["academic_score"] == 99
    assert saved["behavior_score"] is None
    assert saved["last_updated"] == "2024-05-15T10:00:00"
    assert saved["academic_detail"] == {}
    assert get_saved_aggregate_scores(store, "s2") is None


def test_compare_students_ranking(store):
    for sid in ("c", "b", "a"):
        store.upsert_student({"id": sid, "ad": sid.upper(), "soyad": "Test", "class": "9A"})
    store.upsert_profile(Domain.ACADEMIC, {
        **empty_profile(Domain.ACADEMIC, "c"),
        "strongSubjects": ["Matematik", "Fizik"], "overallMotivation": 9, "homeworkCompletionRate": 95,
    })

    df = compare_students(store, ["a", "b", "c"])
    assert list(df["student_id"]) == ["c", "a", "b"]
    assert list(df["rank"]) == [1, 2, 3]
    assert df.loc[0, "name"] == "C Test"
    assert "completeness" in df.columns


def test_compare_students_empty(store):
    assert compare_students(store, []).empty
