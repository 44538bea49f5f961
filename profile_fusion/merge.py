from __future__ import annotations
import uuid
from typing import Any, Dict, Optional

from .app_logger import get_logger
from .domains import (
    Domain, CANONICAL_FIELDS, MATERIALIZED_DOMAINS, LOGGED_ONLY_DOMAINS, LIST, DATE, default_for, parse_domain,
)
from .mapping import map_insights
from .store import ProfileStore
from .utils import ensure_list, normalize_date, today

logger = get_logger(__name__)

AUTO_SYNC_ASSESSOR = "AI Auto-Sync"


class DomainUpdateError(RuntimeError):
    """Сбой при сборке/записи профиля одного домена."""

    def __init__(self, message: str, student_id: str = "", domain: str = ""):
        super().__init__(message)
        self.student_id = student_id
        self.domain = domain


class UnknownDomainError(DomainUpdateError):
    pass


def _normalize_value(kind: str, value: Any) -> Any:
    # None и пустая строка не затирают прежнее значение
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if kind == LIST:
        return ensure_list(value)
    if kind == DATE:
        return normalize_date(value)
    return value


def merge_profile(
    domain: Domain,
    student_id: str,
    existing: Optional[Dict[str, Any]],
    mapped: Dict[str, Any],
    assessed_by: str = AUTO_SYNC_ASSESSOR,
) -> Dict[str, Any]:
    """
    Новый кандидат профиля целиком (до записи):
      поле = новое значение, если оно не None; иначе прежнее; иначе значение по умолчанию.
    Поля, которых нет во входе, никогда не стираются.
    """
    existing = existing or {}
    profile: Dict[str, Any] = {
        "id": existing.get("id") or str(uuid.uuid4()),
        "studentId": student_id,
        "assessmentDate": today().isoformat(),
        "additionalNotes": mapped.get("additionalNotes") or existing.get("additionalNotes"),
        "assessedBy": assessed_by,
    }

    for name, kind in CANONICAL_FIELDS[domain]:
        new_value = _normalize_value(kind, mapped[name]) if name in mapped else None
        if new_value is not None:
            profile[name] = new_value
        elif existing.get(name) is not None:
            profile[name] = _normalize_value(kind, existing[name])
        else:
            profile[name] = default_for(kind)

    return profile


def _merge_materialized(store: ProfileStore, student_id: str, domain: Domain, fields: Dict[str, Any]) -> Dict[str, Any]:
    existing = store.get_profile(student_id, domain)
    profile = merge_profile(domain, student_id, existing, fields)
    store.upsert_profile(domain, profile)
    logger.info("Updated %s profile for student %s (%d fields: %s)",
                domain.value, student_id, len(fields), ", ".join(fields))
    return profile


def update_domain(
    store: ProfileStore,
    student_id: str,
    domain: Domain | str,
    insights: Dict[str, Any],
    source: str = "",
) -> Optional[Dict[str, Any]]:
    """
    Слияние инсайтов одного домена с текущим профилем ученика.

    Возвращает записанный профиль; None, если писать нечего (пустое сопоставление)
    или домен принимается только в лог (behavioral/motivation/risk_factors/family).
    Любой сбой сборки или записи поднимается как DomainUpdateError;
    запись делается одним upsert уже собранного кандидата.

    Параллельные вызовы для одного (student_id, domain) не упорядочиваются:
    читать-слить-записать не атомарно, сериализация по ученику на стороне вызывающего.
    """
    try:
        domain = parse_domain(domain)
    except ValueError:
        logger.warning("Unknown domain %r for student %s (source=%s)", domain, student_id, source)
        raise UnknownDomainError(f"unknown domain: {domain!r}", student_id, str(domain))

    result = map_insights(domain, insights)
    # пустые значения (None, "") не участвуют в слиянии
    fields = {k: v for k, v in result["fields"].items() if v is not None}
    if not fields and not result["unmapped"]:
        logger.debug("No fields to update for %s (student %s)", domain.value, student_id)
        return None

    if domain in LOGGED_ONLY_DOMAINS:
        # таблиц для этих доменов пока нет: только лог
        logger.info("Domain %s for student %s is not materialized; mapped fields: %s, unmapped: %s",
                    domain.value, student_id, fields, list(result["unmapped"]))
        return None

    if domain not in MATERIALIZED_DOMAINS:
        raise UnknownDomainError(f"no merge target for domain {domain.value}", student_id, domain.value)

    if not fields:
        logger.info("Only unmapped keys for %s (student %s): %s",
                    domain.value, student_id, list(result["unmapped"]))
        return None

    try:
        return _merge_materialized(store, student_id, domain, fields)
    except Exception as e:
        logger.error("Failed to update %s for student %s (source=%s): %s", domain.value, student_id, source, e)
        raise DomainUpdateError(f"failed to update {domain.value}: {e}", student_id, domain.value) from e
