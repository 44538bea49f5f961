from __future__ import annotations
import uuid
from typing import Any, Dict, List, Optional

from .app_logger import get_logger
from .collaborators import (
    Validator, IdentitySynthesizer, SuggestionQueue,
    FallbackValidator, FallbackIdentitySynthesizer, InMemorySuggestionQueue,
    PRIORITY_HIGH, PRIORITY_MEDIUM,
)
from .conflicts import resolve_conflicts, split_conflicts
from .domains import LOGGED_ONLY_DOMAINS, MATERIALIZED_DOMAINS, parse_domain
from .mapping import map_insights
from .merge import update_domain, DomainUpdateError
from .store import ProfileStore
from .utils import as_bool, as_float, load_json, rules_path, now_iso

logger = get_logger(__name__)

RULES = load_json(rules_path(), {})

VALIDATION_FAILED_PREFIX = "Veri doğrulama başarısız: "
GENERIC_FAILURE = "Profil güncellenemedi. Ayrıntılar sistem günlüğüne kaydedildi."
QUEUED_MESSAGE = "Güven skoru düşük. Güncelleme önerisi onay kuyruğuna eklendi."


def _success_message(n: int) -> str:
    return f"Profil başarıyla güncellendi. {n} alan etkilendi."


def normalize_confidence(value: Any) -> float:
    # 0..1; экстракторы иногда отдают проценты (0..100)
    v = as_float(value, 0.0)
    if v > 1:
        v = v / 100.0
    return max(0.0, min(1.0, v))


def held_fields(escalated: List[Dict[str, Any]]) -> set:
    # "health.bloodType" и "bloodType" блокируют одно и то же поле
    held = set()
    for conflict in escalated:
        field = str(conflict.get("field") or "").strip()
        if field:
            held.add(field)
            held.add(field.rsplit(".", 1)[-1])
    return held


def without_held(domain: Any, insights: Dict[str, Any], held: set) -> Dict[str, Any]:
    """Убирает из инсайтов ключи, чьё поле ждёт ручного решения по конфликту."""
    if not held:
        return insights
    try:
        diagnostics = map_insights(domain, insights)["diagnostics"]
    except ValueError:
        return insights
    blocked = {d["key"] for d in diagnostics if d["key"] in held or d["canonical"] in held}
    return {k: v for k, v in insights.items() if k not in blocked}


def _accepted_without_write(domain: Any, insights: Dict[str, Any]) -> bool:
    # домены без таблицы: наблюдение принято и попадает в журнал
    try:
        result = map_insights(domain, insights)
    except ValueError:
        return False
    if result["domain"] not in LOGGED_ONLY_DOMAINS:
        return False
    return any(v is not None for v in result["fields"].values())


def normalize_validation(raw: Dict[str, Any]) -> Dict[str, Any]:
    # принимаем и snake_case, и camelCase от внешнего экстрактора
    def pick(*keys, default=None):
        for k in keys:
            if k in raw and raw[k] is not None:
                return raw[k]
        return default

    domains = pick("suggested_domains", "suggestedDomain", default=[]) or []
    if isinstance(domains, str):
        domains = [domains]
    return {
        "is_valid": as_bool(pick("is_valid", "isValid", default=False)) is True,
        "suggested_domains": list(domains),
        "extracted_insights": dict(pick("extracted_insights", "extractedInsights", default={}) or {}),
        "confidence": normalize_confidence(pick("confidence", default=0)),
        "conflicts": list(pick("conflicts", default=[]) or []),
        "reasoning": str(pick("reasoning", default="") or ""),
    }


class ProfileUpdateOrchestrator:
    """
    Точка входа конвейера: одно наблюдение -> валидация (внешняя) -> сопоставление
    -> слияние по доменам -> конфликты -> идентичность -> журнал синхронизации.

    Обновления одного ученика вызывающий должен сериализовать (очередь или блокировка
    на ученика): слияние "прочитать-слить-записать" не атомарно.
    """

    def __init__(
        self,
        store: ProfileStore,
        validator: Optional[Validator] = None,
        identity: Optional[IdentitySynthesizer] = None,
        queue: Optional[SuggestionQueue] = None,
        min_confidence: Optional[float] = None,
    ):
        self.store = store
        self.validator = validator or FallbackValidator()
        self.identity = identity or FallbackIdentitySynthesizer()
        self.queue = queue if queue is not None else InMemorySuggestionQueue()
        if min_confidence is None:
            min_confidence = as_float(RULES.get("auto_apply_min_confidence"), 0.5)
        self.min_confidence = float(min_confidence)

    def process_data_update(self, request: Dict[str, Any]) -> Dict[str, Any]:
        student_id = str(request.get("studentId", "") or "")
        source = str(request.get("source", "") or "")
        logger.info("Processing data update for student %s from %s", student_id, source)

        try:
            return self._process(request, student_id, source)
        except Exception:
            logger.exception("Profile update failed for student %s (source=%s)", student_id, source)
            return self._result(False, GENERIC_FAILURE)

    def _process(self, request: Dict[str, Any], student_id: str, source: str) -> Dict[str, Any]:
        validation = normalize_validation(self.validator.validate(source, request.get("rawData")))

        if not validation["is_valid"]:
            logger.info("Validation rejected data for student %s (source=%s): %s",
                        student_id, source, validation["reasoning"])
            return self._result(False, VALIDATION_FAILED_PREFIX + validation["reasoning"], validation=validation)

        conflicts = validation["conflicts"]
        resolved = resolve_conflicts(student_id, conflicts)
        _, escalated = split_conflicts(conflicts)
        for conflict in escalated:
            self._queue_conflict(request, student_id, conflict)

        if validation["confidence"] < self.min_confidence:
            self._queue_low_confidence(request, student_id, validation)
            return self._result(
                True, QUEUED_MESSAGE, validation=validation, conflicts=conflicts,
                resolved=resolved, escalated=escalated, queued=True,
            )

        held = held_fields(escalated)
        updated: List[str] = []
        actions: Dict[str, str] = {}
        failed: List[Dict[str, str]] = []
        for domain in validation["suggested_domains"]:
            insights = without_held(domain, validation["extracted_insights"], held)
            if len(insights) < len(validation["extracted_insights"]):
                logger.info("Holding %d conflicting insight(s) for student %s in %s until review",
                            len(validation["extracted_insights"]) - len(insights), student_id, domain)
            try:
                profile = update_domain(self.store, student_id, domain, insights, source)
            except DomainUpdateError as e:
                failed.append({"domain": e.domain or str(domain), "error": str(e)})
                continue
            if profile is not None:
                action = "updated"
            elif _accepted_without_write(domain, insights):
                action = "logged"
            else:
                continue
            name = parse_domain(domain).value
            if name not in actions:
                updated.append(name)
                actions[name] = action

        identity_refreshed = self.refresh_identity(student_id)
        self._log_updates(request, student_id, validation, updated, actions)

        return self._result(
            True, _success_message(len(updated)), validation=validation, conflicts=conflicts,
            resolved=resolved, escalated=escalated, updated=updated, failed=failed,
            identity_refreshed=identity_refreshed,
        )

    def refresh_identity(self, student_id: str) -> bool:
        # не фатально: ошибка синтеза только логируется
        try:
            data = {
                "studentId": student_id,
                "student": self.store.get_student(student_id),
                "profiles": {d.value: p for d, p in self.store.get_all_profiles(student_id).items()},
                "behavior": self.store.list_behavior_incidents(student_id),
            }
            identity = self.identity.synthesize(student_id, data)
            identity["studentId"] = student_id
            self.store.save_identity(identity)
        except Exception as e:
            logger.error("Identity refresh failed for student %s: %s", student_id, e)
            return False
        return True

    def _log_updates(self, request: Dict[str, Any], student_id: str,
                     validation: Dict[str, Any], updated: List[str],
                     actions: Optional[Dict[str, str]] = None) -> None:
        actions = actions or {}
        for domain in updated:
            self.store.append_sync_log({
                "id": str(uuid.uuid4()),
                "studentId": student_id,
                "source": request.get("source"),
                "sourceId": request.get("sourceId"),
                "domain": domain,
                "action": actions.get(domain, "updated"),
                "validationScore": validation["confidence"],
                "aiReasoning": validation["reasoning"],
                "extractedInsights": validation["extracted_insights"],
                "timestamp": request.get("timestamp") or now_iso(),
                "processedBy": "ai",
            })
        logger.info("Saved %d sync log entries for student %s", len(updated), student_id)

    def _queue_conflict(self, request: Dict[str, Any], student_id: str, conflict: Dict[str, Any]) -> None:
        self.queue.create_suggestion({
            "studentId": student_id,
            "suggestionType": "PROFILE_UPDATE",
            "source": request.get("source"),
            "sourceId": request.get("sourceId"),
            "priority": PRIORITY_HIGH,
            "title": f"Veri çelişkisi: {conflict.get('field', '')}",
            "description": "Yüksek önem dereceli çelişki manuel onay gerektiriyor.",
            "reasoning": "Yeni veri mevcut profil bilgisiyle çelişiyor.",
            "confidence": None,
            "proposedChanges": [{
                "field": conflict.get("field"),
                "currentValue": conflict.get("existingValue"),
                "proposedValue": conflict.get("newValue"),
                "reason": "Çelişki çözümü",
            }],
        })

    def _queue_low_confidence(self, request: Dict[str, Any], student_id: str, validation: Dict[str, Any]) -> None:
        changes = []
        for raw_domain in validation["suggested_domains"]:
            try:
                domain = parse_domain(raw_domain)
            except ValueError:
                continue
            if domain not in MATERIALIZED_DOMAINS:
                continue
            existing = self.store.get_profile(student_id, domain) or {}
            for field, value in map_insights(domain, validation["extracted_insights"])["fields"].items():
                changes.append({
                    "field": f"{domain.value}.{field}",
                    "currentValue": existing.get(field),
                    "proposedValue": value,
                    "reason": validation["reasoning"],
                })
        self.queue.create_suggestion({
            "studentId": student_id,
            "suggestionType": "PROFILE_UPDATE",
            "source": request.get("source"),
            "sourceId": request.get("sourceId"),
            "priority": PRIORITY_MEDIUM,
            "title": "Düşük güvenli profil güncelleme önerisi",
            "description": f"Güven skoru {validation['confidence']:.2f}, eşik {self.min_confidence:.2f}.",
            "reasoning": validation["reasoning"],
            "confidence": validation["confidence"],
            "proposedChanges": changes,
        })
        logger.info("Confidence %.2f below %.2f for student %s: queued %d proposed changes",
                    validation["confidence"], self.min_confidence, student_id, len(changes))

    @staticmethod
    def _result(
        success: bool,
        message: str,
        validation: Optional[Dict[str, Any]] = None,
        conflicts: Optional[List[Dict[str, Any]]] = None,
        resolved: Optional[List[Dict[str, Any]]] = None,
        escalated: Optional[List[Dict[str, Any]]] = None,
        updated: Optional[List[str]] = None,
        failed: Optional[List[Dict[str, str]]] = None,
        queued: bool = False,
        identity_refreshed: bool = False,
    ) -> Dict[str, Any]:
        return {
            "success": success,
            "message": message,
            "updated_domains": updated or [],
            "failed_domains": failed or [],
            "validation": validation,
            "conflicts": conflicts or [],
            "resolved_conflicts": resolved or [],
            "escalated_conflicts": escalated or [],
            "auto_resolved": not escalated,
            "queued_for_review": queued,
            "identity_refreshed": identity_refreshed,
        }
