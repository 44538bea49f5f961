from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
from rapidfuzz import fuzz, process

from .app_logger import get_logger
from .domains import Domain, CANONICAL_FIELDS, LIST, MAPPING, NUMBER, parse_domain
from .utils import norm_key, ensure_list, as_number, as_bool, load_json, rules_path

logger = get_logger(__name__)

RULES = load_json(rules_path(), {})

# Трансформации значений
T_LIST = "list"
T_NUMBER = "number"
T_BOOLEAN = "boolean"

# canonical -> (transform, [алиасы en/tr]); сравнение без "_"/пробелов и без регистра
SYN: Dict[Domain, Dict[str, Tuple[Optional[str], List[str]]]] = {
    Domain.HEALTH: {
        "lastHealthCheckup": (None, ["last_doctor_visit", "doktor_kontrolu", "doctor_visit", "doktor_ziyareti",
                                     "last_health_checkup", "son_saglik_kontrolu"]),
        "chronicDiseases": (T_LIST, ["chronic_disease", "kronik_hastalik"]),
        "currentMedications": (T_LIST, ["medication", "ilac"]),
        "allergies": (T_LIST, ["allergy", "alerji"]),
        "medicalHistory": (None, ["medical_history", "tibbi_gecmis"]),
        "specialNeeds": (None, ["special_needs", "ozel_ihtiyaclar"]),
        "physicalLimitations": (None, ["physical_limitations", "fiziksel_kisitlamalar"]),
        "bloodType": (None, ["blood_type", "kan_grubu"]),
        "emergencyContact1Name": (None, ["emergency_contact_name", "acil_kisi"]),
        "emergencyContact1Phone": (None, ["emergency_contact_phone", "acil_telefon"]),
    },
    Domain.ACADEMIC: {
        "strongSubjects": (T_LIST, ["favorite_subject", "sevdigi_ders", "strong_subject", "güçlü_ders"]),
        "weakSubjects": (T_LIST, ["difficult_subject", "zorluk_cekilen_ders", "weak_subject", "zayıf_ders"]),
        "studyHoursPerWeek": (T_NUMBER, ["study_hours_per_week", "haftalik_calisma_saati"]),
        "homeworkCompletionRate": (T_NUMBER, ["homework_completion", "odev_tamamlama"]),
        "overallMotivation": (T_NUMBER, ["overall_motivation", "genel_motivasyon"]),
        "primaryLearningStyle": (None, ["primary_learning_style", "birincil_ogrenme_stili", "learning_style",
                                        "ogrenme_stili"]),
        "strongSkills": (T_LIST, ["strong_skill", "güçlü_beceri"]),
        "weakSkills": (T_LIST, ["weak_skill", "zayıf_beceri"]),
    },
    Domain.SOCIAL_EMOTIONAL: {
        "strongSocialSkills": (T_LIST, ["strong_social_skill", "güçlü_sosyal_beceri"]),
        "developingSocialSkills": (T_LIST, ["developing_social_skill", "gelişen_sosyal_beceri"]),
        "empathyLevel": (T_NUMBER, ["empathy_level", "empati_seviyesi"]),
        "selfAwarenessLevel": (T_NUMBER, ["self_awareness_level", "oz_farkindalik"]),
        "emotionRegulationLevel": (T_NUMBER, ["emotion_regulation_level", "duygu_duzenlemesi"]),
        "conflictResolutionLevel": (T_NUMBER, ["conflict_resolution_level", "çatışma_çözme"]),
        "leadershipLevel": (T_NUMBER, ["leadership_level", "liderlik_seviyesi"]),
        "teamworkLevel": (T_NUMBER, ["teamwork_level", "takim_çalışması"]),
        "communicationLevel": (T_NUMBER, ["communication_level", "iletisim_seviyesi"]),
        "friendCircleSize": (None, ["friend_circle_size", "arkadas_cevresi_buyuklugu"]),
        "friendCircleQuality": (None, ["friend_circle_quality", "arkadas_cevresi_kalitesi"]),
        "socialRole": (None, ["social_role", "sosyal_rol"]),
        "bullyingStatus": (None, ["bullying_status", "zorbalik_durumu"]),
    },
    Domain.BEHAVIORAL: {
        "attentionSpan": (None, ["attention_span", "dikkat_suresi"]),
        "impulsivityLevel": (None, ["impulsivity", "dusunmeden_hareket"]),
        "aggressionLevel": (None, ["aggression", "saldirganlik"]),
        "ruleCompliance": (None, ["rule_following", "kural_uyumu"]),
        "disciplineIssues": (None, ["discipline_issues", "disiplin_sorunlari"]),
    },
    Domain.MOTIVATION: {
        "motivationLevel": (T_NUMBER, ["motivation_level", "motivasyon_seviyesi"]),
        "academicGoals": (T_LIST, ["academic_goals", "akademik_hedefler"]),
        "careerAspirations": (T_LIST, ["career_aspirations", "kariyer_hedefleri"]),
        "engagementLevel": (None, ["engagement_level", "ilgi_seviyesi"]),
        "persistenceLevel": (T_NUMBER, ["persistence", "sebat"]),
    },
    Domain.RISK_FACTORS: {
        "overallRiskLevel": (None, ["risk_level", "risk_seviyesi"]),
        "substanceUseRisk": (None, ["substance_use", "madde_kullanimi"]),
        "selfHarmRisk": (None, ["self_harm", "kendine_zarar"]),
        "suicidalIdeation": (T_BOOLEAN, ["suicidal_ideation", "intihar_dusuncesi"]),
        "violenceRisk": (None, ["violence_risk", "siddet_riski"]),
        "truancyRisk": (None, ["truancy", "devamsizlik_riski"]),
    },
    Domain.TALENTS_INTERESTS: {
        "creativeTalents": (T_LIST, ["creative_talent", "yaratici_yetenek"]),
        "physicalTalents": (T_LIST, ["physical_talent", "fiziksel_yetenek"]),
        "primaryInterests": (T_LIST, ["primary_interest", "birincil_ilgi", "interest", "ilgi", "hobby", "hobi"]),
        "exploratoryInterests": (T_LIST, ["exploratory_interest", "keşif_ilgisi"]),
        "weeklyEngagementHours": (T_NUMBER, ["weekly_engagement_hours", "haftalik_katilim_saati"]),
        "clubMemberships": (T_LIST, ["club_membership", "kulup_uyeligi"]),
        "competitionsParticipated": (T_LIST, ["competition_participated", "katildigi_yarismalar"]),
    },
    Domain.FAMILY: {
        "familyStructure": (None, ["family_structure", "aile_yapisi"]),
        "parentsEducationLevel": (None, ["parents_education", "ebeveyn_egitim"]),
        "familyIncomeLevel": (None, ["family_income", "aile_geliri"]),
        "parentalInvolvement": (None, ["parental_involvement", "ebeveyn_ilgisi"]),
        "homeEnvironment": (None, ["home_environment", "ev_ortami"]),
        "numberOfSiblings": (T_NUMBER, ["siblings", "kardes_sayisi"]),
    },
}

# Порог для подсказки "похожий алиас" в диагностике (на сопоставление не влияет)
HINT_MIN_SCORE = 80


def _transform_for_kind(kind: str) -> Optional[str]:
    if kind == LIST:
        return T_LIST
    if kind == NUMBER:
        return T_NUMBER
    return None


def build_alias_index(domain: Domain) -> Dict[str, Tuple[str, Optional[str]]]:
    """
    norm_key(alias) -> (canonical, transform)
    Порядок: алиасы из SYN, затем имена самих канонических полей,
    затем extra_aliases из rules.json. Первое совпадение выигрывает.
    """
    index: Dict[str, Tuple[str, Optional[str]]] = {}
    kinds = dict(CANONICAL_FIELDS.get(domain, []))

    for canonical, (transform, aliases) in SYN.get(domain, {}).items():
        for alias in [canonical] + aliases:
            index.setdefault(norm_key(alias), (canonical, transform))

    # каноническое имя без алиаса ("emergencyContact2Name") тоже принимаем
    for canonical, kind in kinds.items():
        index.setdefault(norm_key(canonical), (canonical, _transform_for_kind(kind)))

    extra = (RULES.get("extra_aliases", {}) or {}).get(domain.value, {}) or {}
    for alias, canonical in extra.items():
        transform = _transform_for_kind(kinds[canonical]) if canonical in kinds else None
        index.setdefault(norm_key(alias), (canonical, transform))

    return index


_INDEX_CACHE: Dict[Domain, Dict[str, Tuple[str, Optional[str]]]] = {}


def _alias_index(domain: Domain) -> Dict[str, Tuple[str, Optional[str]]]:
    if domain not in _INDEX_CACHE:
        _INDEX_CACHE[domain] = build_alias_index(domain)
    return _INDEX_CACHE[domain]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def apply_transform(transform: Optional[str], value: Any) -> Any:
    if _is_blank(value):
        # пустое значение = "нет данных", а не пустой список
        return None
    if transform == T_LIST:
        return ensure_list(value)
    if transform == T_NUMBER:
        return as_number(value)
    if transform == T_BOOLEAN:
        return as_bool(value)
    return value


def _nearest_alias(domain: Domain, key: str) -> Optional[Dict[str, Any]]:
    index = _alias_index(domain)
    if not index:
        return None
    hit = process.extractOne(norm_key(key), list(index.keys()), scorer=fuzz.ratio, score_cutoff=HINT_MIN_SCORE)
    if hit is None:
        return None
    alias, score, _ = hit
    return {"alias": alias, "canonical": index[alias][0], "score": round(float(score), 1)}


def map_insights(domain: Domain | str, insights: Dict[str, Any]) -> Dict[str, Any]:
    """
    Разбирает набор инсайтов одного домена на две корзины:
      {
        "domain": Domain,
        "fields": {canonical: value},     # известные поля после трансформации
        "unmapped": {raw_key: raw_value}, # без сопоставления, как есть
        "diagnostics": [ {key, status, canonical, transform, hint}, ... ],
      }
    Исключений не бросает: неизвестный ключ - это данные, а не ошибка.
    """
    domain = parse_domain(domain)
    index = _alias_index(domain)

    fields: Dict[str, Any] = {}
    unmapped: Dict[str, Any] = {}
    diagnostics: List[Dict[str, Any]] = []

    for key, value in (insights or {}).items():
        hit = index.get(norm_key(key))
        if hit is not None:
            canonical, transform = hit
            # повтор в рамках одного вызова: последняя запись выигрывает
            fields[canonical] = apply_transform(transform, value)
            diagnostics.append({
                "key": key, "status": "mapped", "canonical": canonical, "transform": transform, "hint": None,
            })
            logger.debug("Mapped %s: %s -> %s = %r", domain.value, key, canonical, fields[canonical])
        else:
            unmapped[key] = value
            hint = _nearest_alias(domain, key)
            diagnostics.append({
                "key": key, "status": "unmapped", "canonical": None, "transform": None, "hint": hint,
            })
            logger.info("No mapping for %s key %r, keeping raw value%s", domain.value, key,
                        f" (closest alias: {hint['alias']} -> {hint['canonical']})" if hint else "")

    return {"domain": domain, "fields": fields, "unmapped": unmapped, "diagnostics": diagnostics}


def map_insights_to_fields(domain: Domain | str, insights: Dict[str, Any]) -> Dict[str, Any]:
    # Плоский вид: канонические поля + несопоставленные ключи как есть (в порядке инсайтов)
    result = map_insights(domain, insights)
    out: Dict[str, Any] = {}
    for diag in result["diagnostics"]:
        key = diag["key"]
        if diag["status"] == "mapped":
            out[diag["canonical"]] = result["fields"][diag["canonical"]]
        else:
            out[key] = result["unmapped"][key]
    return out
