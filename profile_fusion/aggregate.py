from __future__ import annotations
import numpy as np
from typing import Any, Dict, List, Optional

from .utils import as_float, ensure_list, is_filled, norm_text, now_iso, round_half_up

Profile = Optional[Dict[str, Any]]

# Веса общего балла (сумма = 1.0)
OVERALL_WEIGHTS = {
    "academic_score": 0.20,
    "social_emotional_score": 0.20,
    "talents_interests_score": 0.10,
    "health_wellness_score": 0.10,
    "behavior_score": 0.15,
    "motivation_score": 0.10,
    "risk_score": 0.075,
    "protective_score": 0.075,
}

FRIEND_CIRCLE = {"YOK": -20, "AZ": -10, "ORTA": 10, "GENİŞ": 20}
FRIEND_QUALITY = {"ZAYIF": -15, "ORTA": 0, "İYİ": 15, "ÇOK_İYİ": 25}
SOCIAL_ROLE = {"LİDER": 25, "AKTİF_ÜYE": 15, "TAKİPÇİ": 5, "GÖZLEMCİ": -5, "İZOLE": -25}
BULLYING = {"YOK": 20, "GÖZLEMCİ": 0, "MAĞDUR": -25, "FAİL": -30, "HER_İKİSİ": -40}

SEVERITY = {"DÜŞÜK": 2, "ORTA": 5, "YÜKSEK": 10, "ÇOK_YÜKSEK": 15}
FREQUENCY = {"TEK_OLAY": 1, "NADİR": 3, "HAFTALIK": 6, "GÜNLÜK": 10, "SÜREKLİ": 15}

SEL_LEVELS = (
    "empathyLevel", "selfAwarenessLevel", "emotionRegulationLevel", "conflictResolutionLevel",
    "leadershipLevel", "teamworkLevel", "communicationLevel",
)


def _clip(x: float) -> float:
    return float(np.clip(x, 0, 100))


def _count(profile: Profile, field: str) -> int:
    if not profile:
        return 0
    return len(ensure_list(profile.get(field)))


def _level(profile: Profile, field: str, default: float) -> float:
    # 0 и пусто -> default (незаполненный уровень считается средним)
    v = as_float((profile or {}).get(field))
    return v if v else default


def _lookup(table: Dict[str, int], value: Any) -> int:
    # "geniş", "GENIŞ" и "GENİŞ" - один ключ (str.upper() даёт I вместо İ)
    key = norm_text(value)
    for name, points in table.items():
        if norm_text(name) == key:
            return points
    return 0


def academic_score(profile: Profile) -> float:
    if not profile:
        return 0.0
    subject = max(0, _count(profile, "strongSubjects") * 10 - _count(profile, "weakSubjects") * 5)
    skill = _count(profile, "strongSkills") * 8
    motivation = _level(profile, "overallMotivation", 5) * 5
    homework = _level(profile, "homeworkCompletionRate", 50) / 2
    return _clip((subject + skill + motivation + homework) / 4)


def social_context_score(profile: Profile) -> float:
    if not profile:
        return 0.0
    score = 50
    score += _lookup(FRIEND_CIRCLE, profile.get("friendCircleSize"))
    score += _lookup(FRIEND_QUALITY, profile.get("friendCircleQuality"))
    score += _lookup(SOCIAL_ROLE, profile.get("socialRole"))
    score += _lookup(BULLYING, profile.get("bullyingStatus"))
    return _clip(score)


def social_emotional_score(profile: Profile) -> float:
    if not profile:
        return 0.0
    avg_sel = sum(_level(profile, f, 5) for f in SEL_LEVELS) / len(SEL_LEVELS)
    skill = _count(profile, "strongSocialSkills") * 5 - _count(profile, "developingSocialSkills") * 2
    return _clip((skill + avg_sel * 10 + social_context_score(profile)) / 3)


def talents_interests_score(profile: Profile) -> float:
    if not profile:
        return 0.0
    talent = (_count(profile, "creativeTalents") + _count(profile, "physicalTalents")) * 8
    interest = _count(profile, "primaryInterests") * 6
    engagement = min(40.0, (as_float(profile.get("weeklyEngagementHours")) or 0) * 2)
    return _clip((talent + interest + engagement) / 3)


def health_wellness_score(profile: Profile) -> float:
    if not profile:
        return 50.0
    score = 100.0
    score -= _count(profile, "chronicDiseases") * 8
    score -= _count(profile, "allergies") * 3
    score -= _count(profile, "currentMedications") * 5
    if is_filled(profile.get("specialNeeds")):
        score -= 10
    if is_filled(profile.get("physicalLimitations")):
        score -= 10
    return _clip(score)


def behavior_breakdown(incidents: List[Dict[str, Any]]) -> Dict[str, float]:
    n = len(incidents)
    if n == 0:
        return {"incident_count": 0, "avg_severity": 0.0, "avg_frequency": 0.0,
                "intervention_effectiveness": 0.0, "score": 100.0}

    sev = sum(_lookup(SEVERITY, i.get("severity")) for i in incidents) / n
    freq = sum(_lookup(FREQUENCY, i.get("frequency")) for i in incidents) / n
    eff_values = [v for v in (as_float(i.get("interventionEffectiveness")) for i in incidents) if v]
    eff = sum(eff_values) / len(eff_values) if eff_values else 5.0

    score = 100.0 - n * 5 - sev * 2 - freq * 2 + (eff - 5) * 2
    return {"incident_count": n, "avg_severity": round(sev, 2), "avg_frequency": round(freq, 2),
            "intervention_effectiveness": round(eff, 2), "score": _clip(score)}


def behavior_score(incidents: List[Dict[str, Any]]) -> float:
    return behavior_breakdown(incidents or [])["score"]


def motivation_score(profile: Profile) -> float:
    if not profile:
        return 50.0
    levels = ("goalClarityLevel", "intrinsicMotivationLevel", "extrinsicMotivationLevel",
              "persistenceLevel", "futureOrientationLevel")
    avg = sum(_level(profile, f, 5) for f in levels) / len(levels)
    goals = (_count(profile, "primaryMotivators") + _count(profile, "careerAspirations")
             + _count(profile, "academicGoals")) * 3
    return _clip((avg * 10 + goals) / 2)


def risk_score(profile: Profile) -> float:
    # выше = безопаснее
    if not profile:
        return 50.0
    levels = ("overallRiskLevel", "academicRiskLevel", "behavioralRiskLevel", "emotionalRiskLevel", "socialRiskLevel")
    avg = sum(_level(profile, f, 5) for f in levels) / len(levels)
    factors = _count(profile, "identifiedRiskFactors")
    return _clip(((100 - avg * 10) + (100 - factors * 5)) / 2)


def protective_score(profile: Profile) -> float:
    if not profile:
        return 50.0
    levels = ("familySupport", "peerSupport", "schoolEngagement", "resilienceLevel", "copingSkills")
    avg = sum(_level(profile, f, 5) for f in levels) / len(levels)
    return _clip((avg * 10 + _count(profile, "protectiveFactors") * 5) / 2)


def _avg_raw(profile: Profile, fields) -> float:
    # для детализации: пустое = 0, без подстановки среднего
    if not profile:
        return 0.0
    return round(sum(as_float(profile.get(f)) or 0 for f in fields) / len(fields), 2)


def calculate_aggregate_scores(
    academic: Profile = None,
    social_emotional: Profile = None,
    talents_interests: Profile = None,
    health: Profile = None,
    behavior_incidents: Optional[List[Dict[str, Any]]] = None,
    motivation: Profile = None,
    risk_protective: Profile = None,
) -> Dict[str, Any]:
    """
    Детерминированный расчёт восьми оценок 0..100 и общей взвешенной.
    Отсутствующий профиль не ошибка: академика/SEL/таланты -> 0,
    здоровье/мотивация/риск/защита -> 50, поведение без инцидентов -> 100.
    """
    incidents = behavior_incidents or []
    raw = {
        "academic_score": academic_score(academic),
        "social_emotional_score": social_emotional_score(social_emotional),
        "talents_interests_score": talents_interests_score(talents_interests),
        "health_wellness_score": health_wellness_score(health),
        "behavior_score": behavior_score(incidents),
        "motivation_score": motivation_score(motivation),
        "risk_score": risk_score(risk_protective),
        "protective_score": protective_score(risk_protective),
    }
    overall = sum(raw[k] * w for k, w in OVERALL_WEIGHTS.items())

    scores = {k: round_half_up(v) for k, v in raw.items()}
    scores["overall_score"] = round_half_up(_clip(overall))

    beh = behavior_breakdown(incidents)
    scores["score_breakdown"] = {
        "academic": {
            "strong_subjects_count": _count(academic, "strongSubjects"),
            "weak_subjects_count": _count(academic, "weakSubjects"),
            "strong_skills_count": _count(academic, "strongSkills"),
            "motivation_level": as_float((academic or {}).get("overallMotivation")) or 0,
            "homework_completion_rate": as_float((academic or {}).get("homeworkCompletionRate")) or 0,
            "score": scores["academic_score"],
        },
        "social_emotional": {
            "avg_sel_competency": _avg_raw(social_emotional, SEL_LEVELS),
            "strong_skills_count": _count(social_emotional, "strongSocialSkills"),
            "developing_skills_count": _count(social_emotional, "developingSocialSkills"),
            "social_context_score": round(social_context_score(social_emotional), 2),
            "score": scores["social_emotional_score"],
        },
        "talents_interests": {
            "creative_talents_count": _count(talents_interests, "creativeTalents"),
            "physical_talents_count": _count(talents_interests, "physicalTalents"),
            "interests_count": _count(talents_interests, "primaryInterests"),
            "engagement_hours": as_float((talents_interests or {}).get("weeklyEngagementHours")) or 0,
            "score": scores["talents_interests_score"],
        },
        "health": {
            "chronic_diseases_count": _count(health, "chronicDiseases"),
            "allergies_count": _count(health, "allergies"),
            "medications_count": _count(health, "currentMedications"),
            "score": scores["health_wellness_score"],
        },
        "behavior": {
            "incident_count": beh["incident_count"],
            "avg_severity": beh["avg_severity"],
            "avg_frequency": beh["avg_frequency"],
            "intervention_effectiveness": beh["intervention_effectiveness"],
            "score": scores["behavior_score"],
        },
        "motivation": {
            "goal_clarity": as_float((motivation or {}).get("goalClarityLevel")) or 0,
            "intrinsic_motivation": as_float((motivation or {}).get("intrinsicMotivationLevel")) or 0,
            "persistence": as_float((motivation or {}).get("persistenceLevel")) or 0,
            "future_orientation": as_float((motivation or {}).get("futureOrientationLevel")) or 0,
            "score": scores["motivation_score"],
        },
        "risk": {
            "overall_risk_level": as_float((risk_protective or {}).get("overallRiskLevel")) or 0,
            "risk_factors_count": _count(risk_protective, "identifiedRiskFactors"),
            "avg_risk_across_domains": _avg_raw(risk_protective, (
                "academicRiskLevel", "behavioralRiskLevel", "emotionalRiskLevel", "socialRiskLevel")),
            "score": scores["risk_score"],
        },
        "protective": {
            "protective_factors_count": _count(risk_protective, "protectiveFactors"),
            "avg_protective_factors": _avg_raw(risk_protective, (
                "familySupport", "peerSupport", "schoolEngagement", "resilienceLevel", "copingSkills")),
            "resilience_level": as_float((risk_protective or {}).get("resilienceLevel")) or 0,
            "score": scores["protective_score"],
        },
    }
    scores["last_calculated"] = now_iso()
    return scores
