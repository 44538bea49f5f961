from __future__ import annotations
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from .domains import Domain
from .store import ProfileStore
from .utils import as_float, ensure_list, is_filled, is_valid_date, norm_text, round_half_up

Profile = Optional[Dict[str, Any]]
Report = Dict[str, Any]

NOT_CREATED = "Profil oluşturulmamış"

EXCELLENT = "excellent"
GOOD = "good"
FAIR = "fair"
POOR = "poor"
INCOMPLETE = "incomplete"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[0-9]{10,11}$")

SEL_LEVEL_FIELDS = (
    "empathyLevel", "selfAwarenessLevel", "emotionRegulationLevel", "conflictResolutionLevel",
    "leadershipLevel", "teamworkLevel", "communicationLevel",
)
MOTIVATION_LEVEL_FIELDS = (
    "goalClarityLevel", "intrinsicMotivationLevel", "extrinsicMotivationLevel",
    "persistenceLevel", "futureOrientationLevel",
)
RISK_LEVEL_FIELDS = (
    "overallRiskLevel", "academicRiskLevel", "behavioralRiskLevel", "emotionalRiskLevel", "socialRiskLevel",
    "familySupport", "peerSupport", "schoolEngagement", "resilienceLevel", "copingSkills",
)


def calculate_quality_score(total_critical: int, filled_critical: int,
                            total_optional: int, filled_optional: int, issues: int) -> int:
    critical = filled_critical / total_critical * 100 if total_critical > 0 else 100
    optional = filled_optional / total_optional * 100 if total_optional > 0 else 100
    return max(0, round_half_up(critical * 0.7 + optional * 0.3 - issues * 5))


def quality_status(score: float) -> str:
    if score >= 90:
        return EXCELLENT
    if score >= 70:
        return GOOD
    if score >= 50:
        return FAIR
    if score > 0:
        return POOR
    return INCOMPLETE


def is_valid_email(value: Any) -> bool:
    return bool(_EMAIL_RE.match(str(value)))


def is_valid_phone(value: Any) -> bool:
    return bool(_PHONE_RE.match(re.sub(r"\s", "", str(value))))


def _absent_report(profile_type: str, recommendation: str) -> Report:
    return {
        "profile_type": profile_type,
        "quality_score": 0,
        "status": INCOMPLETE,
        "missing_critical_fields": [NOT_CREATED],
        "missing_optional_fields": [],
        "data_quality_issues": [],
        "recommendations": [recommendation],
    }


def _level_issues(profile: Dict[str, Any], fields: Sequence[str], lo: float, hi: float) -> List[str]:
    # 0/пусто = не заполнено, не проверяем
    issues = []
    for f in fields:
        v = as_float(profile.get(f))
        if v and (v < lo or v > hi):
            issues.append(f"{f} {lo:g}-{hi:g} arasında olmalı")
    return issues


def _build_report(
    profile_type: str,
    profile: Dict[str, Any],
    critical: Sequence[str],
    optional: Sequence[str],
    issues: List[str],
    recommendations: List[str],
) -> Report:
    missing_critical = [f for f in critical if not is_filled(profile.get(f))]
    missing_optional = [f for f in optional if not is_filled(profile.get(f))]
    score = calculate_quality_score(
        len(critical), len(critical) - len(missing_critical),
        len(optional), len(optional) - len(missing_optional),
        len(issues),
    )
    return {
        "profile_type": profile_type,
        "quality_score": score,
        "status": quality_status(score),
        "missing_critical_fields": missing_critical,
        "missing_optional_fields": missing_optional,
        "data_quality_issues": issues,
        "recommendations": recommendations,
    }


def validate_basic_info(student: Profile) -> Report:
    if not student:
        return _absent_report("Temel Bilgiler", "Öğrenci kaydı oluşturulmalı")

    issues: List[str] = []
    if is_filled(student.get("eposta")) and not is_valid_email(student["eposta"]):
        issues.append("Geçersiz e-posta formatı")
    if is_filled(student.get("telefon")) and not is_valid_phone(student["telefon"]):
        issues.append("Geçersiz telefon numarası formatı")
    if is_filled(student.get("dogumTarihi")) and not is_valid_date(student["dogumTarihi"]):
        issues.append("Geçersiz doğum tarihi")

    recs: List[str] = []
    if not is_filled(student.get("veliTelefon")):
        recs.append("Veli iletişim bilgisi eklenmeli")
    if not is_filled(student.get("acilKisi")) or not is_filled(student.get("acilTelefon")):
        recs.append("Acil durum iletişim bilgileri tamamlanmalı")

    return _build_report(
        "Temel Bilgiler", student,
        ["id", "ad", "soyad", "class"],
        ["cinsiyet", "dogumTarihi", "telefon", "eposta", "adres", "veliTelefon"],
        issues, recs,
    )


def validate_academic_profile(profile: Profile) -> Report:
    if not profile:
        return _absent_report("Akademik Profil", "Akademik profil oluşturulmalı")

    issues: List[str] = []
    motivation = as_float(profile.get("overallMotivation"))
    if motivation and (motivation < 1 or motivation > 10):
        issues.append("Motivasyon seviyesi 1-10 arasında olmalı")
    rate = as_float(profile.get("homeworkCompletionRate"))
    if rate and (rate < 0 or rate > 100):
        issues.append("Ödev tamamlama oranı 0-100 arasında olmalı")

    recs: List[str] = []
    if not ensure_list(profile.get("strongSubjects")):
        recs.append("Güçlü ders alanları belirlenmeli")
    if not is_filled(profile.get("primaryLearningStyle")):
        recs.append("Öğrenme stili değerlendirilmeli")
    if not motivation or motivation <= 3:
        recs.append("Motivasyon düşük - destek planı oluşturulmalı")

    return _build_report(
        "Akademik Profil", profile,
        ["strongSubjects", "weakSubjects", "primaryLearningStyle"],
        ["strongSkills", "weakSkills", "secondaryLearningStyle", "overallMotivation",
         "studyHoursPerWeek", "homeworkCompletionRate"],
        issues, recs,
    )


def validate_social_emotional_profile(profile: Profile) -> Report:
    if not profile:
        return _absent_report("Sosyal-Duygusal Profil", "Sosyal-duygusal profil oluşturulmalı")

    issues = _level_issues(profile, SEL_LEVEL_FIELDS, 1, 10)

    recs: List[str] = []
    bullying = norm_text(profile.get("bullyingStatus"))
    if bullying and bullying != "yok":
        recs.append("Zorbalık durumu tespit edildi - acil müdahale gerekli")
    if norm_text(profile.get("friendCircleSize")) in ("yok", "az"):
        recs.append("Sosyal destek programı önerilir")
    regulation = as_float(profile.get("emotionRegulationLevel"))
    if regulation and regulation <= 3:
        recs.append("Duygu düzenleme becerileri geliştirilmeli")

    return _build_report(
        "Sosyal-Duygusal Profil", profile,
        ["empathyLevel", "selfAwarenessLevel", "emotionRegulationLevel"],
        ["strongSocialSkills", "developingSocialSkills", "conflictResolutionLevel", "leadershipLevel",
         "teamworkLevel", "communicationLevel", "friendCircleSize", "socialRole"],
        issues, recs,
    )


def validate_talents_interests_profile(profile: Profile) -> Report:
    if not profile:
        return _absent_report("Yetenek ve İlgi Profili", "Yetenek ve ilgi profili oluşturulmalı")

    issues: List[str] = []
    hours = as_float(profile.get("weeklyEngagementHours"))
    if hours and (hours < 0 or hours > 168):
        issues.append("Haftalık katılım saati 0-168 arasında olmalı")

    recs: List[str] = []
    if not ensure_list(profile.get("primaryInterests")):
        recs.append("İlgi alanları keşfedilmeli")
    if not ensure_list(profile.get("clubMemberships")):
        recs.append("Kulüp veya etkinlik katılımı teşvik edilmeli")

    return _build_report(
        "Yetenek ve İlgi Profili", profile,
        ["primaryInterests"],
        ["creativeTalents", "physicalTalents", "exploratoryInterests", "talentProficiency",
         "weeklyEngagementHours", "clubMemberships"],
        issues, recs,
    )


def validate_health_profile(profile: Profile) -> Report:
    if not profile:
        return _absent_report("Sağlık Profili", "Sağlık profili oluşturulmalı - acil durum bilgileri kritik")

    issues: List[str] = []
    for f in ("emergencyContact1Phone", "emergencyContact2Phone", "physicianPhone"):
        if is_filled(profile.get(f)) and not is_valid_phone(profile[f]):
            issues.append(f"{f}: geçersiz telefon numarası formatı")
    if is_filled(profile.get("lastHealthCheckup")) and not is_valid_date(profile["lastHealthCheckup"]):
        issues.append("Geçersiz sağlık kontrolü tarihi")

    recs: List[str] = []
    if ensure_list(profile.get("chronicDiseases")):
        recs.append("Kronik hastalık mevcut - düzenli takip gerekli")
    if ensure_list(profile.get("allergies")):
        recs.append("Alerji bilgisi mevcut - öğretmenlere bildirilmeli")
    if not is_filled(profile.get("lastHealthCheckup")):
        recs.append("Sağlık kontrolü tarihi eksik")

    return _build_report(
        "Sağlık Profili", profile,
        ["emergencyContact1Name", "emergencyContact1Phone"],
        ["bloodType", "chronicDiseases", "allergies", "currentMedications",
         "emergencyContact2Name", "lastHealthCheckup"],
        issues, recs,
    )


def validate_motivation_profile(profile: Profile) -> Report:
    if not profile:
        return _absent_report("Motivasyon Profili", "Motivasyon profili oluşturulmalı")

    issues = _level_issues(profile, MOTIVATION_LEVEL_FIELDS, 1, 10)

    recs: List[str] = []
    intrinsic = as_float(profile.get("intrinsicMotivationLevel"))
    if intrinsic and intrinsic <= 3:
        recs.append("İçsel motivasyon düşük - motivasyon görüşmesi planlanmalı")
    if not ensure_list(profile.get("careerAspirations")):
        recs.append("Kariyer hedefleri belirlenmeli")

    return _build_report(
        "Motivasyon Profili", profile,
        ["goalClarityLevel", "intrinsicMotivationLevel"],
        ["extrinsicMotivationLevel", "persistenceLevel", "futureOrientationLevel",
         "primaryMotivators", "careerAspirations", "academicGoals"],
        issues, recs,
    )


def validate_risk_protective_profile(profile: Profile) -> Report:
    if not profile:
        return _absent_report("Risk ve Koruyucu Faktörler", "Risk değerlendirmesi yapılmalı")

    issues = _level_issues(profile, RISK_LEVEL_FIELDS, 1, 10)

    recs: List[str] = []
    overall = as_float(profile.get("overallRiskLevel"))
    if overall and overall >= 7:
        recs.append("Yüksek risk - bireysel müdahale planı oluşturulmalı")
    if not ensure_list(profile.get("protectiveFactors")):
        recs.append("Koruyucu faktörler güçlendirilmeli")

    return _build_report(
        "Risk ve Koruyucu Faktörler", profile,
        ["overallRiskLevel"],
        ["academicRiskLevel", "behavioralRiskLevel", "emotionalRiskLevel", "socialRiskLevel",
         "identifiedRiskFactors", "protectiveFactors", "resilienceLevel"],
        issues, recs,
    )


# порядок секций отчёта
REPORT_SECTIONS: List[tuple[str, Callable[[Profile], Report]]] = [
    ("basic", validate_basic_info),
    ("academic", validate_academic_profile),
    ("social_emotional", validate_social_emotional_profile),
    ("talents_interests", validate_talents_interests_profile),
    ("health", validate_health_profile),
    ("motivation", validate_motivation_profile),
    ("risk_protective", validate_risk_protective_profile),
]


def generate_student_quality_report(
    student: Profile,
    academic: Profile = None,
    social_emotional: Profile = None,
    talents_interests: Profile = None,
    health: Profile = None,
    motivation: Profile = None,
    risk_protective: Profile = None,
    student_id: str = "",
) -> Report:
    """
    Сводный отчёт по 7 разделам: среднее качество + предупреждения и действия
    с подписью раздела.
    """
    inputs = {
        "basic": student,
        "academic": academic,
        "social_emotional": social_emotional,
        "talents_interests": talents_interests,
        "health": health,
        "motivation": motivation,
        "risk_protective": risk_protective,
    }
    profiles = {key: fn(inputs[key]) for key, fn in REPORT_SECTIONS}
    reports = list(profiles.values())

    overall = round_half_up(sum(r["quality_score"] for r in reports) / len(reports))

    warnings: List[str] = []
    actions: List[str] = []
    for r in reports:
        if r["missing_critical_fields"]:
            warnings.append(f"{r['profile_type']}: {', '.join(r['missing_critical_fields'])} eksik")
        for issue in r["data_quality_issues"]:
            warnings.append(f"{r['profile_type']}: {issue}")
    for r in reports:
        for rec in r["recommendations"]:
            actions.append(f"{r['profile_type']}: {rec}")

    return {
        "student_id": (student or {}).get("id") or student_id,
        "overall_quality": overall,
        "profiles": profiles,
        "critical_warnings": warnings,
        "action_items": actions,
    }


def build_student_quality_report(store: ProfileStore, student_id: str) -> Report:
    return generate_student_quality_report(
        store.get_student(student_id),
        academic=store.get_profile(student_id, Domain.ACADEMIC),
        social_emotional=store.get_profile(student_id, Domain.SOCIAL_EMOTIONAL),
        talents_interests=store.get_profile(student_id, Domain.TALENTS_INTERESTS),
        health=store.get_profile(student_id, Domain.HEALTH),
        motivation=store.get_profile(student_id, Domain.MOTIVATION),
        risk_protective=store.get_profile(student_id, Domain.RISK_FACTORS),
        student_id=student_id,
    )
