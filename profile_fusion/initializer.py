from __future__ import annotations
import uuid
from typing import Any, Dict

from .app_logger import get_logger
from .domains import Domain, STORED_DOMAINS, empty_profile
from .store import ProfileStore
from .utils import today

logger = get_logger(__name__)

SYSTEM_ASSESSOR = "SYSTEM"

# Безопасные значения нового профиля (остальные поля - по умолчанию вида)
INITIAL_VALUES: Dict[Domain, Dict[str, Any]] = {
    Domain.ACADEMIC: {
        "primaryLearningStyle": "GÖRSEL",
        "secondaryLearningStyle": "İŞİTSEL",
        "overallMotivation": 5,
        "studyHoursPerWeek": 0,
        "homeworkCompletionRate": 50,
        "additionalNotes": "İlk profil oluşturuldu. Değerlendirme bekleniyor.",
    },
    Domain.SOCIAL_EMOTIONAL: {
        "empathyLevel": 5,
        "selfAwarenessLevel": 5,
        "emotionRegulationLevel": 5,
        "conflictResolutionLevel": 5,
        "leadershipLevel": 5,
        "teamworkLevel": 5,
        "communicationLevel": 5,
        "friendCircleSize": "ORTA",
        "friendCircleQuality": "ORTA",
        "socialRole": "TAKİPÇİ",
        "bullyingStatus": "YOK",
        "additionalNotes": "İlk profil oluşturuldu. Gözlem bekleniyor.",
    },
    Domain.TALENTS_INTERESTS: {
        "weeklyEngagementHours": 0,
        "additionalNotes": "İlk profil oluşturuldu. Yetenek tespiti bekleniyor.",
    },
    Domain.HEALTH: {
        "additionalNotes": "İlk profil oluşturuldu. Sağlık bilgileri bekleniyor.",
    },
    Domain.MOTIVATION: {
        "goalClarityLevel": 5,
        "intrinsicMotivationLevel": 5,
        "extrinsicMotivationLevel": 5,
        "persistenceLevel": 5,
        "futureOrientationLevel": 5,
        "additionalNotes": "İlk profil oluşturuldu. Motivasyon değerlendirmesi bekleniyor.",
    },
    Domain.RISK_FACTORS: {
        "overallRiskLevel": 5,
        "academicRiskLevel": 5,
        "behavioralRiskLevel": 5,
        "emotionalRiskLevel": 5,
        "socialRiskLevel": 5,
        "familySupport": 5,
        "peerSupport": 5,
        "schoolEngagement": 5,
        "resilienceLevel": 5,
        "copingSkills": 5,
        "additionalNotes": "İlk profil oluşturuldu. Risk değerlendirmesi bekleniyor.",
    },
}


def initial_profile(domain: Domain, student_id: str, assessed_by: str = SYSTEM_ASSESSOR) -> Dict[str, Any]:
    profile = empty_profile(domain, student_id)
    profile.update(INITIAL_VALUES.get(domain, {}))
    profile["id"] = str(uuid.uuid4())
    profile["assessmentDate"] = today().isoformat()
    profile["assessedBy"] = assessed_by
    return profile


def check_profiles_exist(store: ProfileStore, student_id: str) -> Dict[str, bool]:
    return {d.value: store.has_profile(student_id, d) for d in STORED_DOMAINS}


def initialize_all_profiles(store: ProfileStore, student_id: str, assessed_by: str = SYSTEM_ASSESSOR) -> None:
    """Новый ученик: все шесть профилей с безопасными значениями (существующие перезаписываются)."""
    for domain in STORED_DOMAINS:
        store.upsert_profile(domain, initial_profile(domain, student_id, assessed_by))
    logger.info("Initialized all profiles for student %s", student_id)


def initialize_missing_profiles(store: ProfileStore, student_id: str, assessed_by: str = SYSTEM_ASSESSOR) -> list[str]:
    created = []
    for domain, exists in check_profiles_exist(store, student_id).items():
        if exists:
            continue
        store.upsert_profile(domain, initial_profile(Domain(domain), student_id, assessed_by))
        created.append(domain)
        logger.info("Initialized %s profile for student %s", domain, student_id)
    return created
