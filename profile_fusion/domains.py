from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Tuple


class Domain(str, Enum):
    HEALTH = "health"
    ACADEMIC = "academic"
    SOCIAL_EMOTIONAL = "social_emotional"
    TALENTS_INTERESTS = "talents_interests"
    BEHAVIORAL = "behavioral"
    MOTIVATION = "motivation"
    RISK_FACTORS = "risk_factors"
    FAMILY = "family"


# Виды полей: list -> [] ; mapping -> {} ; number/text/date -> None
LIST = "list"
MAPPING = "mapping"
NUMBER = "number"
TEXT = "text"
DATE = "date"

CANONICAL_FIELDS: Dict[Domain, List[Tuple[str, str]]] = {
    Domain.HEALTH: [
        ("bloodType", TEXT),
        ("chronicDiseases", LIST),
        ("allergies", LIST),
        ("currentMedications", LIST),
        ("medicalHistory", TEXT),
        ("specialNeeds", TEXT),
        ("physicalLimitations", TEXT),
        ("emergencyContact1Name", TEXT),
        ("emergencyContact1Phone", TEXT),
        ("emergencyContact1Relation", TEXT),
        ("emergencyContact2Name", TEXT),
        ("emergencyContact2Phone", TEXT),
        ("emergencyContact2Relation", TEXT),
        ("physicianName", TEXT),
        ("physicianPhone", TEXT),
        ("lastHealthCheckup", DATE),
    ],
    Domain.ACADEMIC: [
        ("strongSubjects", LIST),
        ("weakSubjects", LIST),
        ("strongSkills", LIST),
        ("weakSkills", LIST),
        ("primaryLearningStyle", TEXT),
        ("secondaryLearningStyle", TEXT),
        ("overallMotivation", NUMBER),  # 1..10
        ("studyHoursPerWeek", NUMBER),
        ("homeworkCompletionRate", NUMBER),  # 0..100
    ],
    Domain.SOCIAL_EMOTIONAL: [
        ("strongSocialSkills", LIST),
        ("developingSocialSkills", LIST),
        ("empathyLevel", NUMBER),  # уровни компетенций 1..10
        ("selfAwarenessLevel", NUMBER),
        ("emotionRegulationLevel", NUMBER),
        ("conflictResolutionLevel", NUMBER),
        ("leadershipLevel", NUMBER),
        ("teamworkLevel", NUMBER),
        ("communicationLevel", NUMBER),
        ("friendCircleSize", TEXT),
        ("friendCircleQuality", TEXT),
        ("socialRole", TEXT),
        ("bullyingStatus", TEXT),
    ],
    Domain.TALENTS_INTERESTS: [
        ("creativeTalents", LIST),
        ("physicalTalents", LIST),
        ("primaryInterests", LIST),
        ("exploratoryInterests", LIST),
        ("talentProficiency", MAPPING),
        ("weeklyEngagementHours", NUMBER),
        ("clubMemberships", LIST),
        ("competitionsParticipated", LIST),
    ],
    # motivation / risk_factors хранятся (инициализатор, ручной ввод), но merge их не материализует
    Domain.MOTIVATION: [
        ("goalClarityLevel", NUMBER),
        ("intrinsicMotivationLevel", NUMBER),
        ("extrinsicMotivationLevel", NUMBER),
        ("persistenceLevel", NUMBER),
        ("futureOrientationLevel", NUMBER),
        ("primaryMotivators", LIST),
        ("careerAspirations", LIST),
        ("academicGoals", LIST),
    ],
    Domain.RISK_FACTORS: [
        ("overallRiskLevel", NUMBER),
        ("academicRiskLevel", NUMBER),
        ("behavioralRiskLevel", NUMBER),
        ("emotionalRiskLevel", NUMBER),
        ("socialRiskLevel", NUMBER),
        ("identifiedRiskFactors", LIST),
        ("familySupport", NUMBER),
        ("peerSupport", NUMBER),
        ("schoolEngagement", NUMBER),
        ("resilienceLevel", NUMBER),
        ("copingSkills", NUMBER),
        ("protectiveFactors", LIST),
    ],
}

# Домены, у которых есть собственная запись профиля, обновляемая merge
MATERIALIZED_DOMAINS = (
    Domain.HEALTH,
    Domain.ACADEMIC,
    Domain.SOCIAL_EMOTIONAL,
    Domain.TALENTS_INTERESTS,
)

# Принимаются, но пока только логируются (таблиц для них нет)
LOGGED_ONLY_DOMAINS = (
    Domain.BEHAVIORAL,
    Domain.MOTIVATION,
    Domain.RISK_FACTORS,
    Domain.FAMILY,
)

# Домены, для которых хранилище держит запись профиля
STORED_DOMAINS = tuple(CANONICAL_FIELDS.keys())


def parse_domain(value: Any) -> Domain:
    # "Social Emotional", "social-emotional", Domain.X -> Domain; иначе ValueError
    if isinstance(value, Domain):
        return value
    key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    return Domain(key)


def list_fields(domain: Domain) -> List[str]:
    return [name for name, kind in CANONICAL_FIELDS.get(domain, []) if kind == LIST]


def structured_fields(domain: Domain) -> List[str]:
    # Поля, которые в хранилище сериализуются в JSON-текст
    return [name for name, kind in CANONICAL_FIELDS.get(domain, []) if kind in (LIST, MAPPING)]


def default_for(kind: str) -> Any:
    if kind == LIST:
        return []
    if kind == MAPPING:
        return {}
    return None


def empty_profile(domain: Domain, student_id: str) -> Dict[str, Any]:
    # Профиль "отсутствует": все поля по умолчанию
    profile: Dict[str, Any] = {
        "id": None,
        "studentId": student_id,
        "assessmentDate": None,
        "additionalNotes": None,
        "assessedBy": None,
    }
    for name, kind in CANONICAL_FIELDS.get(domain, []):
        profile[name] = default_for(kind)
    return profile
