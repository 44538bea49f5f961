from __future__ import annotations
from typing import Any, Dict, List, Tuple

from .app_logger import get_logger

logger = get_logger(__name__)

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"

# Конфликт: {"field", "newValue", "existingValue", "severity"}
Conflict = Dict[str, Any]


def _severity(conflict: Conflict) -> str:
    return str(conflict.get("severity", "") or "").strip().lower()


def split_conflicts(conflicts: List[Conflict]) -> Tuple[List[Conflict], List[Conflict]]:
    """
    (resolved, escalated):
      - high -> escalated как есть, для ручной проверки;
      - всё остальное -> resolved по правилу "новые данные важнее", severity = "low".
    "Новые" = последний обработанный запрос; метки времени не сравниваются.
    """
    resolved: List[Conflict] = []
    escalated: List[Conflict] = []
    for c in conflicts or []:
        if _severity(c) == SEVERITY_HIGH:
            escalated.append(dict(c))
        else:
            resolved.append({**c, "severity": SEVERITY_LOW})
    return resolved, escalated


def resolve_conflicts(student_id: str, conflicts: List[Conflict]) -> List[Conflict]:
    # Возвращает только разрешённые; high не разрешаются автоматически
    resolved, escalated = split_conflicts(conflicts)
    for c in escalated:
        logger.warning("High severity conflict for student %s on field %r: new=%r existing=%r",
                       student_id, c.get("field"), c.get("newValue"), c.get("existingValue"))
    return resolved
