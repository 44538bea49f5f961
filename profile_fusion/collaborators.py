"""
Внешние участники конвейера: валидатор/экстрактор, синтезатор "кто этот ученик",
очередь предложений на одобрение. Здесь - протоколы и простые реализации
без ИИ, которыми пользуются консоль и тесты.
"""
from __future__ import annotations
import copy
import uuid
from typing import Any, Dict, List, Optional, Protocol

from .app_logger import get_logger
from .domains import Domain
from .utils import now_iso

logger = get_logger(__name__)

PRIORITY_LOW = "LOW"
PRIORITY_MEDIUM = "MEDIUM"
PRIORITY_HIGH = "HIGH"
PRIORITY_CRITICAL = "CRITICAL"

STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"

# Источник наблюдения -> затрагиваемые домены (когда экстрактор недоступен)
SOURCE_DOMAINS: Dict[str, List[Domain]] = {
    "counseling_session": [Domain.SOCIAL_EMOTIONAL, Domain.BEHAVIORAL, Domain.MOTIVATION],
    "survey_response": [Domain.SOCIAL_EMOTIONAL, Domain.RISK_FACTORS],
    "exam_result": [Domain.ACADEMIC],
    "behavior_incident": [Domain.BEHAVIORAL, Domain.RISK_FACTORS],
    "meeting_note": [Domain.SOCIAL_EMOTIONAL, Domain.FAMILY],
    "attendance": [Domain.BEHAVIORAL, Domain.RISK_FACTORS],
    "parent_meeting": [Domain.FAMILY, Domain.SOCIAL_EMOTIONAL],
    "self_assessment": [Domain.MOTIVATION, Domain.SOCIAL_EMOTIONAL],
    "manual_input": [Domain.ACADEMIC, Domain.SOCIAL_EMOTIONAL],
}
DATA_SOURCES = tuple(SOURCE_DOMAINS.keys())


class Validator(Protocol):
    def validate(self, source: str, raw_data: Any) -> Dict[str, Any]:
        """
        -> {"is_valid", "suggested_domains", "extracted_insights",
            "confidence" (0..1), "conflicts", "reasoning"}
        """
        ...


class IdentitySynthesizer(Protocol):
    def synthesize(self, student_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...


class SuggestionQueue(Protocol):
    def create_suggestion(self, suggestion: Dict[str, Any]) -> str:
        ...


class FallbackValidator:
    """Базовая проверка без ИИ: домены по источнику, словарь данных идёт как инсайты."""

    confidence = 0.6
    reasoning = "Temel validasyon kullanıldı (AI kullanılamadı)"

    def validate(self, source: str, raw_data: Any) -> Dict[str, Any]:
        insights = dict(raw_data) if isinstance(raw_data, dict) else {"rawData": raw_data}
        return {
            "is_valid": True,
            "suggested_domains": [d.value for d in SOURCE_DOMAINS.get(source, [])],
            "extracted_insights": insights,
            "confidence": self.confidence,
            "conflicts": [],
            "reasoning": self.reasoning,
            "recommendations": ["Veriyi manuel olarak gözden geçirin"],
        }


class FallbackIdentitySynthesizer:
    def synthesize(self, student_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        # нейтральная идентичность: все подоценки 50, приоритет medium
        return {
            "studentId": student_id,
            "lastUpdated": now_iso(),
            "summary": "Profil analizi devam ediyor...",
            "keyCharacteristics": [],
            "currentState": "Veri toplanıyor",
            "academicScore": 50,
            "socialEmotionalScore": 50,
            "behavioralScore": 50,
            "motivationScore": 50,
            "riskLevel": 50,
            "strengths": [],
            "challenges": [],
            "recentChanges": [],
            "personalityProfile": "",
            "learningStyle": "",
            "interventionPriority": "medium",
            "recommendedActions": [],
        }


SUGGESTION_REQUIRED = ("studentId", "source", "title")


class InMemorySuggestionQueue:
    """Очередь предложений на одобрение (хранилище и UI - внешние)."""

    def __init__(self):
        self._items: List[Dict[str, Any]] = []

    def create_suggestion(self, suggestion: Dict[str, Any]) -> str:
        missing = [k for k in SUGGESTION_REQUIRED if not suggestion.get(k)]
        if missing:
            raise ValueError(f"suggestion is missing {', '.join(missing)}")
        item = copy.deepcopy(suggestion)
        item.setdefault("priority", PRIORITY_MEDIUM)
        item.setdefault("proposedChanges", [])
        item["id"] = str(uuid.uuid4())
        item["status"] = STATUS_PENDING
        item["createdAt"] = now_iso()
        self._items.append(item)
        logger.info("Queued %s suggestion %s for student %s: %s",
                    item["priority"], item["id"], item["studentId"], item["title"])
        return item["id"]

    def list_suggestions(self, student_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        out = []
        for item in self._items:
            if student_id is not None and item["studentId"] != student_id:
                continue
            if status is not None and item["status"] != status:
                continue
            out.append(copy.deepcopy(item))
        return out

    def review(self, suggestion_id: str, approved: bool, reviewed_by: str = "") -> Dict[str, Any]:
        for item in self._items:
            if item["id"] == suggestion_id:
                if item["status"] != STATUS_PENDING:
                    raise ValueError(f"suggestion {suggestion_id} already reviewed")
                item["status"] = STATUS_APPROVED if approved else STATUS_REJECTED
                item["reviewedBy"] = reviewed_by
                item["reviewedAt"] = now_iso()
                return copy.deepcopy(item)
        raise KeyError(suggestion_id)

    def __len__(self) -> int:
        return len(self._items)
