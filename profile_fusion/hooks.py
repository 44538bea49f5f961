from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from .app_logger import get_logger
from .collaborators import (
    SuggestionQueue, PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_CRITICAL,
)
from .utils import as_float, norm_text

logger = get_logger(__name__)

LOW_EXAM_SCORE = 50
# сравнение после norm_text: регистр и турецкие İ/I не важны
SERIOUS_SEVERITIES = ("yüksek", "kritik")
LOW_MOODS = ("kötü", "çok_kötü")
WORRYING_EMOTIONS = ("endişeli", "üzgün")
PRESENT = "Var"


def _change(field: str, value: Any, reason: str) -> Dict[str, Any]:
    return {"field": field, "currentValue": None, "proposedValue": value, "reason": reason}


def _short(text: Any, limit: int = 100) -> str:
    s = str(text or "")
    return s[:limit] + "..." if len(s) > limit else s


class AutoSyncHooks:
    """
    Обработчики событий: по каждому наблюдению создают предложение в очереди.
    Авторитетные поля ученика здесь не пишутся, решение за консультантом.
    """

    def __init__(self, queue: SuggestionQueue):
        self.queue = queue

    def _submit(self, operation: str, suggestion: Dict[str, Any]) -> Optional[str]:
        # сбой одного предложения логируется и не мешает остальным
        try:
            suggestion_id = self.queue.create_suggestion(suggestion)
        except Exception as e:
            logger.error("%s: suggestion for student %s failed: %s",
                         operation, suggestion.get("studentId"), e)
            return None
        logger.info("%s: suggestion %s created for student %s", operation, suggestion_id, suggestion["studentId"])
        return suggestion_id

    def on_counseling_session_completed(self, session: Dict[str, Any]) -> List[str]:
        student_ids = [session["studentId"]] if session.get("studentId") else list(session.get("studentIds") or [])
        emotional_state = norm_text(session.get("emotionalState"))

        changes = []
        if session.get("emotionalState"):
            changes.append(_change("emotionalState", session["emotionalState"], "Görüşmede gözlemlenen duygusal durum"))
        if session.get("cooperationLevel") is not None:
            changes.append(_change("cooperationLevel", session["cooperationLevel"], "Görüşmedeki işbirliği düzeyi"))

        created = []
        for sid in student_ids:
            suggestion_id = self._submit("counseling-session-sync", {
                "studentId": sid,
                "suggestionType": "PROFILE_UPDATE",
                "source": "counseling_session",
                "sourceId": session.get("id"),
                "priority": PRIORITY_HIGH if emotional_state in WORRYING_EMOTIONS else PRIORITY_MEDIUM,
                "title": "Rehberlik Görüşmesi Sonrası Profil Güncelleme",
                "description": "Öğrenci ile yapılan görüşme sonucu profil güncelleme önerisi. "
                               + _short(session.get("detailedNotes")),
                "reasoning": "Görüşme notları ve gözlemler temelinde profil bilgilerinin güncellenmesi önerilmektedir.",
                "confidence": 0.85,
                "proposedChanges": list(changes),
            })
            if suggestion_id:
                created.append(suggestion_id)
        return created

    def on_survey_response_submitted(self, response: Dict[str, Any]) -> Optional[str]:
        sid = response.get("studentId") or (response.get("studentInfo") or {}).get("id")
        if not sid:
            logger.warning("Survey response %s has no student id, skipping", response.get("id"))
            return None
        return self._submit("survey-response-sync", {
            "studentId": sid,
            "suggestionType": "PROFILE_UPDATE",
            "source": "survey_response",
            "sourceId": response.get("id"),
            "priority": PRIORITY_MEDIUM,
            "title": "Anket Sonrası Profil Güncelleme",
            "description": "Öğrencinin anket cevapları temelinde profil güncelleme önerisi.",
            "reasoning": "Anket verileri öğrencinin ilgi alanları, güçlü yönleri ve gelişim alanları hakkında bilgi içermektedir.",
            "confidence": 0.75,
            "proposedChanges": [_change("surveyData", "Anket verileri işlenmeyi bekliyor",
                                        "Anket cevapları profil verilerine dahil edilebilir")],
        })

    def on_exam_result_added(self, exam: Dict[str, Any]) -> Optional[str]:
        score = exam.get("score")
        value = as_float(score)
        low = value is not None and value < LOW_EXAM_SCORE
        name = exam.get("examName", "")
        return self._submit("exam-result-sync", {
            "studentId": exam.get("studentId"),
            "suggestionType": "ACADEMIC_INSIGHT" if low else "PROFILE_UPDATE",
            "source": "exam_result",
            "sourceId": exam.get("id"),
            "priority": PRIORITY_HIGH if low else PRIORITY_LOW,
            "title": f"Düşük Sınav Performansı: {name}" if low else f"Sınav Sonucu Kaydı: {name}",
            "description": f"{name} sınavından {score} puan aldı. "
                           + ("Akademik destek gerekebilir." if low else "Performans profil verilerine eklenebilir."),
            "reasoning": "Düşük sınav performansı, öğrencinin akademik zorluk yaşadığına işaret edebilir." if low
            else "Sınav sonucu, öğrencinin akademik gelişimini takip için kayıt altına alınmalıdır.",
            "confidence": 0.9,
            "proposedChanges": [_change("academicPerformance", f"{name}: {score}",
                                        "Sınav performansı akademik profile eklenmeli")],
        })

    def on_behavior_incident_recorded(self, incident: Dict[str, Any]) -> Optional[str]:
        severity = norm_text(incident.get("severity"))
        serious = severity in SERIOUS_SEVERITIES
        kind = incident.get("behaviorType", "")
        return self._submit("behavior-incident-sync", {
            "studentId": incident.get("studentId"),
            "suggestionType": "INTERVENTION_PLAN" if serious else "BEHAVIOR_INSIGHT",
            "source": "behavior_incident",
            "sourceId": incident.get("id"),
            "priority": PRIORITY_CRITICAL if serious else PRIORITY_MEDIUM,
            "title": f"Kritik Davranış Olayı: {kind}" if serious else f"Davranış Kaydı: {kind}",
            "description": f"{kind} türünde davranış olayı kaydedildi. {incident.get('description', '')}",
            "reasoning": "Ciddi davranış olayı, acil müdahale ve davranışsal destek gerektirebilir." if serious
            else "Davranış olayı, öğrencinin sosyal-duygusal gelişimini takip için kaydedilmelidir.",
            "confidence": 0.95,
            "proposedChanges": [_change("behavioralConcerns", f"{kind} ({incident.get('severity', '')})",
                                        "Davranış olayı profil verilerine eklenmeli")],
        })

    def on_meeting_note_added(self, note: Dict[str, Any]) -> Optional[str]:
        has_plan = bool(note.get("plan"))
        return self._submit("meeting-note-sync", {
            "studentId": note.get("studentId"),
            "suggestionType": "FOLLOW_UP" if has_plan else "PROFILE_UPDATE",
            "source": "meeting_note",
            "sourceId": note.get("id"),
            "priority": PRIORITY_HIGH if has_plan else PRIORITY_MEDIUM,
            "title": f"{note.get('type', '')} Görüşme Notu".strip(),
            "description": _short(note.get("note")),
            "reasoning": "Görüşme notu takip planı içermektedir." if has_plan
            else "Görüşme notları profil verilerine eklenmelidir.",
            "confidence": 0.8,
            "proposedChanges": [_change("meetingNotes", note.get("note"), "Görüşme notu eklenmesi")],
        })

    def on_parent_meeting_recorded(self, meeting: Dict[str, Any]) -> Optional[str]:
        follow_up = bool(meeting.get("followUpActions"))
        changes = []
        if meeting.get("outcomes"):
            changes.append(_change("familyDynamics", meeting["outcomes"], "Veli görüşmesi sonuçları"))
        return self._submit("parent-meeting-sync", {
            "studentId": meeting.get("studentId"),
            "suggestionType": "FOLLOW_UP" if follow_up else "PROFILE_UPDATE",
            "source": "parent_meeting",
            "sourceId": meeting.get("id"),
            "priority": PRIORITY_HIGH if follow_up else PRIORITY_MEDIUM,
            "title": "Veli Görüşmesi Kaydı",
            "description": f"Veli görüşmesi yapıldı. Konular: {meeting.get('topics', '')}",
            "reasoning": "Veli görüşmesi takip eylemleri içermektedir." if follow_up
            else "Veli görüşmesi aile dinamikleri hakkında bilgi içermektedir.",
            "confidence": 0.85,
            "proposedChanges": changes,
        })

    def on_self_assessment_completed(self, assessment: Dict[str, Any]) -> Optional[str]:
        mood = norm_text(assessment.get("mood"))
        low = mood in LOW_MOODS
        return self._submit("self-assessment-sync", {
            "studentId": assessment.get("studentId"),
            "suggestionType": "INTERVENTION_PLAN" if low else "PROFILE_UPDATE",
            "source": "self_assessment",
            "sourceId": assessment.get("id"),
            "priority": PRIORITY_HIGH if low else PRIORITY_LOW,
            "title": "Düşük Ruh Hali Tespiti" if low else "Öz Değerlendirme Kaydı",
            "description": f"Öğrenci ruh hali: {assessment.get('mood', '')}, Enerji: {assessment.get('energy', '')}/10",
            "reasoning": "Düşük ruh hali, duygusal destek gerektirebilir." if low
            else "Öz değerlendirme, öğrencinin duygusal durumunu takip için kayıt altına alınmalıdır.",
            "confidence": 0.8,
            "proposedChanges": [_change("emotionalState", assessment.get("mood"), "Öz değerlendirme sonucu")],
        })

    def on_attendance_recorded(self, attendance: Dict[str, Any]) -> Optional[str]:
        status = str(attendance.get("status") or "").strip()
        # "Var" (присутствовал) не интересен
        if status == PRESENT:
            return None
        return self._submit("attendance-sync", {
            "studentId": attendance.get("studentId"),
            "suggestionType": "PROFILE_UPDATE",
            "source": "attendance",
            "sourceId": attendance.get("id"),
            "priority": PRIORITY_MEDIUM if status == "Yok" else PRIORITY_LOW,
            "title": f"Devamsızlık Kaydı: {status}",
            "description": f"{attendance.get('date', '')} tarihinde {status}",
            "reasoning": "Devamsızlık kayıtları, öğrencinin okula bağlılığını ve risk faktörlerini değerlendirmek için önemlidir.",
            "confidence": 0.9,
            "proposedChanges": [_change("attendanceRecord", status, "Devamsızlık kaydı")],
        })

    def handlers(self) -> Dict[str, Callable[[Dict[str, Any]], Any]]:
        # источник -> обработчик (для консоли)
        return {
            "counseling_session": self.on_counseling_session_completed,
            "survey_response": self.on_survey_response_submitted,
            "exam_result": self.on_exam_result_added,
            "behavior_incident": self.on_behavior_incident_recorded,
            "meeting_note": self.on_meeting_note_added,
            "parent_meeting": self.on_parent_meeting_recorded,
            "self_assessment": self.on_self_assessment_completed,
            "attendance": self.on_attendance_recorded,
        }
