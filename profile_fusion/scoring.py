from __future__ import annotations
import pandas as pd
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .aggregate import calculate_aggregate_scores
from .app_logger import get_logger
from .domains import Domain
from .store import ProfileStore
from .utils import as_float, is_filled, now_iso, round_half_up

logger = get_logger(__name__)

UNIFIED_SCORE_KEYS = ("academic_score", "social_emotional_score", "behavior_score", "motivation_score", "risk_score")

# Чек-листы полноты: (поле или пара полей, подпись)
ACADEMIC_CHECKLIST: List[Tuple[Any, str]] = [
    ("strongSubjects", "Güçlü dersler"),
    ("weakSubjects", "Zayıf dersler"),
    ("strongSkills", "Güçlü beceriler"),
    ("weakSkills", "Zayıf beceriler"),
    ("primaryLearningStyle", "Birincil öğrenme stili"),
    ("secondaryLearningStyle", "İkincil öğrenme stili"),
    ("overallMotivation", "Genel motivasyon"),
    ("studyHoursPerWeek", "Haftalık çalışma saati"),
    ("homeworkCompletionRate", "Ödev tamamlama oranı"),
]

SOCIAL_EMOTIONAL_CHECKLIST: List[Tuple[Any, str]] = [
    ("strongSocialSkills", "Güçlü sosyal beceriler"),
    ("developingSocialSkills", "Gelişen sosyal beceriler"),
    ("empathyLevel", "Empati seviyesi"),
    ("selfAwarenessLevel", "Öz farkındalık"),
    ("emotionRegulationLevel", "Duygu düzenlemesi"),
    ("conflictResolutionLevel", "Çatışma çözme"),
    ("leadershipLevel", "Liderlik"),
    ("teamworkLevel", "Takım çalışması"),
    ("communicationLevel", "İletişim"),
    ("friendCircleSize", "Arkadaş çevresi"),
    ("friendCircleQuality", "Arkadaş çevresi kalitesi"),
    ("socialRole", "Sosyal rol"),
    ("bullyingStatus", "Zorbalık durumu"),
]

TALENTS_CHECKLIST: List[Tuple[Any, str]] = [
    ("creativeTalents", "Yaratıcı yetenekler"),
    ("physicalTalents", "Fiziksel yetenekler"),
    ("primaryInterests", "Birincil ilgi alanları"),
    ("exploratoryInterests", "Keşif ilgi alanları"),
    ("talentProficiency", "Yetenek yeterlilik düzeyi"),
    ("weeklyEngagementHours", "Haftalık katılım saati"),
]

# Контакт считается заполненным только парой имя+телефон
HEALTH_CHECKLIST: List[Tuple[Any, str]] = [
    ("bloodType", "Kan grubu"),
    ("chronicDiseases", "Kronik hastalıklar"),
    ("allergies", "Alerjiler"),
    ("currentMedications", "Kullanılan ilaçlar"),
    (("emergencyContact1Name", "emergencyContact1Phone"), "Birinci acil durum kişisi"),
    (("emergencyContact2Name", "emergencyContact2Phone"), "İkinci acil durum kişisi"),
    ("lastHealthCheckup", "Son sağlık kontrolü"),
]

INCIDENT_CHECKLIST: List[Tuple[Any, str]] = [
    ("behaviorCategory", "Davranış kategorisi"),
    ("severity", "Şiddet düzeyi"),
    ("frequency", "Sıklık"),
    ("antecedent", "Öncül"),
    ("behavior", "Davranış"),
    ("consequence", "Sonuç"),
    ("interventionApplied", "Uygulanan müdahale"),
]

COMPLETENESS_DOMAINS = [
    (Domain.ACADEMIC, "Akademik Profil", ACADEMIC_CHECKLIST),
    (Domain.SOCIAL_EMOTIONAL, "Sosyal-Duygusal Profil", SOCIAL_EMOTIONAL_CHECKLIST),
    (Domain.TALENTS_INTERESTS, "Yetenek ve İlgi Alanları", TALENTS_CHECKLIST),
    (Domain.HEALTH, "Sağlık Profili", HEALTH_CHECKLIST),
]
BEHAVIOR_CATEGORY = "Davranış Kayıtları"


def _item_filled(record: Dict[str, Any], item: Any) -> bool:
    if isinstance(item, tuple):
        return all(is_filled(record.get(f)) for f in item)
    return is_filled(record.get(item))


def checklist_completeness(profile: Optional[Dict[str, Any]], checklist: List[Tuple[Any, str]]) -> Tuple[int, List[str]]:
    # (процент, подписи незаполненных пунктов в порядке чек-листа)
    if not profile:
        return 0, [label for _, label in checklist]
    missing = [label for item, label in checklist if not _item_filled(profile, item)]
    filled = len(checklist) - len(missing)
    return round_half_up(filled / len(checklist) * 100), missing


def behavior_completeness(incidents: List[Dict[str, Any]]) -> Tuple[int, List[str]]:
    # Нет инцидентов = 100 (нечего заполнять)
    if not incidents:
        return 100, []
    total = len(incidents) * len(INCIDENT_CHECKLIST)
    filled = 0
    missing: List[str] = []
    for item, label in INCIDENT_CHECKLIST:
        n = sum(1 for inc in incidents if _item_filled(inc, item))
        filled += n
        if n < len(incidents):
            missing.append(label)
    return round_half_up(filled / total * 100), missing


def calculate_profile_completeness(store: ProfileStore, student_id: str) -> Dict[str, Any]:
    """
    Полнота по пяти доменам (academic, social_emotional, talents_interests, health, behavioral)
    и общая как невзвешенное среднее. Для доменов ниже 100% - список недостающих полей.
    """
    domains: Dict[str, int] = {}
    missing_fields: List[Dict[str, Any]] = []

    for domain, category, checklist in COMPLETENESS_DOMAINS:
        pct, missing = checklist_completeness(store.get_profile(student_id, domain), checklist)
        domains[domain.value] = pct
        if pct < 100 and missing:
            missing_fields.append({"domain": domain.value, "category": category, "fields": missing})

    pct, missing = behavior_completeness(store.list_behavior_incidents(student_id))
    domains[Domain.BEHAVIORAL.value] = pct
    if pct < 100 and missing:
        missing_fields.append({"domain": Domain.BEHAVIORAL.value, "category": BEHAVIOR_CATEGORY, "fields": missing})

    overall = round_half_up(sum(domains.values()) / len(domains))
    return {"student_id": student_id, "overall": overall, "domains": domains, "missing_fields": missing_fields}


def _profiles_for_scoring(store: ProfileStore, student_id: str) -> Dict[str, Any]:
    return {
        "academic": store.get_profile(student_id, Domain.ACADEMIC),
        "social_emotional": store.get_profile(student_id, Domain.SOCIAL_EMOTIONAL),
        "talents_interests": store.get_profile(student_id, Domain.TALENTS_INTERESTS),
        "health": store.get_profile(student_id, Domain.HEALTH),
        "behavior_incidents": store.list_behavior_incidents(student_id),
        "motivation": store.get_profile(student_id, Domain.MOTIVATION),
        "risk_protective": store.get_profile(student_id, Domain.RISK_FACTORS),
    }


def calculate_unified_scores(store: ProfileStore, student_id: str) -> Dict[str, Any]:
    """
    Пять оценок 0..100 + детализация. Только чтение; отсутствующий профиль
    даёт нейтральный вклад, исключений нет.
    """
    profiles = _profiles_for_scoring(store, student_id)
    agg = calculate_aggregate_scores(**profiles)
    bd = agg["score_breakdown"]
    sel = profiles["social_emotional"] or {}

    return {
        "student_id": student_id,
        "last_updated": now_iso(),
        "academic_score": agg["academic_score"],
        "social_emotional_score": agg["social_emotional_score"],
        "behavior_score": agg["behavior_score"],
        "motivation_score": agg["motivation_score"],
        "risk_score": agg["risk_score"],
        "academic_detail": {
            "motivation_level": bd["academic"]["motivation_level"],
            "homework_completion_rate": bd["academic"]["homework_completion_rate"],
            "strong_skills_count": bd["academic"]["strong_skills_count"],
        },
        "social_emotional_detail": {
            "empathy": as_float(sel.get("empathyLevel")) or 0,
            "self_awareness": as_float(sel.get("selfAwarenessLevel")) or 0,
            "emotion_regulation": as_float(sel.get("emotionRegulationLevel")) or 0,
            "avg_sel_competency": bd["social_emotional"]["avg_sel_competency"],
        },
        "behavior_detail": {
            "positive_behavior": max(0, 100 - bd["behavior"]["incident_count"] * 10),
            "incident_count": bd["behavior"]["incident_count"],
            "intervention_effectiveness": bd["behavior"]["intervention_effectiveness"],
        },
        "aggregate": agg,
    }


def save_aggregate_scores(store: ProfileStore, student_id: str, scores: Dict[str, Any]) -> None:
    # upsert по studentId, без истории
    row = {k: scores.get(k) for k in UNIFIED_SCORE_KEYS}
    row["student_id"] = student_id
    row["last_updated"] = scores.get("last_updated") or now_iso()
    store.save_aggregate_scores(student_id, row)
    logger.debug("Saved aggregate scores for student %s", student_id)


def get_saved_aggregate_scores(store: ProfileStore, student_id: str) -> Optional[Dict[str, Any]]:
    row = store.get_aggregate_scores(student_id)
    if row is None:
        return None
    out = {k: row.get(k) for k in UNIFIED_SCORE_KEYS}
    out["student_id"] = student_id
    out["last_updated"] = row.get("last_updated")
    out["academic_detail"] = {}
    out["social_emotional_detail"] = {}
    out["behavior_detail"] = {}
    return out


def compare_students(store: ProfileStore, student_ids: Iterable[str]) -> pd.DataFrame:
    """
    Сравнение когорты: одна строка на ученика, место по общему баллу
    (при равенстве - по id ученика, стабильно).
    """
    rows = []
    for sid in student_ids:
        agg = calculate_unified_scores(store, sid)["aggregate"]
        completeness = calculate_profile_completeness(store, sid)
        student = store.get_student(sid) or {}
        name = " ".join(p for p in (str(student.get("ad", "") or ""), str(student.get("soyad", "") or "")) if p)
        rows.append({
            "student_id": sid,
            "name": name,
            "class": student.get("class", ""),
            "academic_score": agg["academic_score"],
            "social_emotional_score": agg["social_emotional_score"],
            "talents_interests_score": agg["talents_interests_score"],
            "health_wellness_score": agg["health_wellness_score"],
            "behavior_score": agg["behavior_score"],
            "motivation_score": agg["motivation_score"],
            "risk_score": agg["risk_score"],
            "protective_score": agg["protective_score"],
            "overall_score": agg["overall_score"],
            "completeness": completeness["overall"],
        })

    df = pd.DataFrame(rows)
    if df.empty:
        return df

    df = df.sort_values(["overall_score", "student_id"], ascending=[False, True], kind="mergesort").reset_index(drop=True)
    df.insert(0, "rank", df.index + 1)
    return df
