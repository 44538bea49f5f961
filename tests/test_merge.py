import pytest

from profile_fusion.domains import Domain
from profile_fusion.store import ProfileStore
from profile_fusion.merge import (
    AUTO_SYNC_ASSESSOR, DomainUpdateError, UnknownDomainError, merge_profile, update_domain,
)


def test_empty_insights_write_nothing(store):
    assert update_domain(store, "s1", "academic", {}) is None
    assert store.write_count == 0
    assert store.get_profile("s1", Domain.ACADEMIC) is None
    assert store.list_sync_logs() == []


def test_new_profile_from_single_insight(store, frozen_today):
    profile = update_domain(store, "s1", "talents_interests", {"hobi": "satranç"}, source="survey_response")

    stored = store.get_profile("s1", Domain.TALENTS_INTERESTS)
    assert stored == profile
    assert stored["primaryInterests"] == ["satranç"]
    assert stored["creativeTalents"] == []
    assert stored["talentProficiency"] == {}
    assert stored["weeklyEngagementHours"] is None
    assert stored["assessedBy"] == AUTO_SYNC_ASSESSOR
    assert stored["assessmentDate"] == "2024-05-15"
    assert stored["id"]


def test_merge_never_drops_existing_fields(store):
    first = update_domain(store, "s1", "talents_interests", {"hobi": "satranç", "haftalik_katilim_saati": "4"})
    second = update_domain(store, "s1", "talents_interests", {"yaratici_yetenek": "resim"})

    assert second["id"] == first["id"]
    assert second["primaryInterests"] == ["satranç"]
    assert second["weeklyEngagementHours"] == 4
    assert second["creativeTalents"] == ["resim"]


def test_new_value_replaces_list(store):
    update_domain(store, "s1", "academic", {"sevdigi_ders": ["Matematik", "Fizik"]})
    profile = update_domain(store, "s1", "academic", {"sevdigi_ders": "Kimya"})
    assert profile["strongSubjects"] == ["Kimya"]


def test_relative_date_normalized(store, frozen_today):
    profile = update_domain(store, "s1", "health", {"doktor_kontrolu": "dün"})
    assert profile["lastHealthCheckup"] == "2024-05-14"


def test_logged_only_domain_is_not_written(store):
    assert update_domain(store, "s1", "behavioral", {"dikkat_suresi": "kısa"}) is None
    assert update_domain(store, "s1", "family", {"aile_yapisi": "çekirdek"}) is None
    assert store.write_count == 0


def test_only_unmapped_keys_skip_write(store):
    assert update_domain(store, "s1", "academic", {"renk": "mavi"}) is None
    assert store.write_count == 0


def test_unknown_domain(store):
    with pytest.raises(UnknownDomainError) as exc:
        update_domain(store, "s1", "astrology", {"burc": "koç"})
    assert exc.value.domain == "astrology"
    assert isinstance(exc.value, DomainUpdateError)


def test_write_failure_leaves_profile_unchanged(store, monkeypatch):
    update_domain(store, "s1", "academic", {"sevdigi_ders": "Matematik"})

    def boom(domain, profile):
        raise OSError("disk full")

    monkeypatch.setattr(store, "upsert_profile", boom)
    with pytest.raises(DomainUpdateError) as exc:
        update_domain(store, "s1", "academic", {"sevdigi_ders": "Kimya"})

    assert exc.value.student_id == "s1"
    assert exc.value.domain == "academic"
    assert store.get_profile("s1", "academic")["strongSubjects"] == ["Matematik"]


def test_merge_profile_uses_defaults_for_unknown_fields():
    profile = merge_profile(Domain.HEALTH, "s1", None, {"chronicDiseases": "astım"})
    assert profile["chronicDiseases"] == ["astım"]
    assert profile["allergies"] == []
    assert profile["bloodType"] is None
    assert profile["studentId"] == "s1"


def test_blank_insight_keeps_stored_list(store):
    update_domain(store, "s1", "talents_interests", {"hobi": "satranç"})
    profile = update_domain(store, "s1", "talents_interests", {"hobi": None, "haftalik_katilim_saati": 3})
    assert profile["primaryInterests"] == ["satranç"]
    assert profile["weeklyEngagementHours"] == 3

    profile = update_domain(store, "s1", "talents_interests", {"hobi": "  ", "yaratici_yetenek": "resim"})
    assert profile["primaryInterests"] == ["satranç"]
    assert profile["creativeTalents"] == ["resim"]


def test_all_blank_insights_write_nothing(store):
    update_domain(store, "s1", "academic", {"sevdigi_ders": "Matematik"})
    writes = store.write_count
    assert update_domain(store, "s1", "academic", {"sevdigi_ders": None, "zorluk_cekilen_ders": ""}) is None
    assert store.write_count == writes
    assert store.get_profile("s1", "academic")["strongSubjects"] == ["Matematik"]


def test_failed_save_leaves_file_store_unchanged(tmp_path, monkeypatch):
    path = tmp_path / "profiles.json"
    store = ProfileStore(path)
    update_domain(store, "s1", "academic", {"sevdigi_ders": "Matematik"})
    writes = store.write_count

    def boom(path, data):
        raise OSError("disk full")

    monkeypatch.setattr("profile_fusion.store.save_json", boom)
    with pytest.raises(DomainUpdateError):
        update_domain(store, "s1", "academic", {"sevdigi_ders": "Kimya"})

    assert store.write_count == writes
    assert store.get_profile("s1", "academic")["strongSubjects"] == ["Matematik"]
    monkeypatch.undo()
    assert ProfileStore(path).get_profile("s1", "academic")["strongSubjects"] == ["Matematik"]
