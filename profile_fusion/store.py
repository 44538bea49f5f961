from __future__ import annotations
import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .app_logger import get_logger
from .domains import Domain, STORED_DOMAINS, structured_fields, list_fields, parse_domain
from .utils import load_json, save_json, ensure_list

logger = get_logger(__name__)


def _empty_state() -> Dict[str, Any]:
    return {
        "students": {},
        "profiles": {d.value: {} for d in STORED_DOMAINS},
        "behavior_incidents": {},
        "sync_logs": [],
        "aggregate_scores": {},
        "identities": {},
    }


def _encode_row(domain: Domain, row: Dict[str, Any]) -> Dict[str, Any]:
    # list/mapping -> JSON-текст (как колонка TEXT в таблице профиля)
    out = dict(row)
    for f in structured_fields(domain):
        if f in out and out[f] is not None:
            out[f] = json.dumps(out[f], ensure_ascii=False)
    return out


def _decode_row(domain: Domain, row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    lists = set(list_fields(domain))
    for f in structured_fields(domain):
        raw = out.get(f)
        if f in lists:
            out[f] = ensure_list(raw)
            continue
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw) if raw.strip() else {}
            except ValueError:
                parsed = {}
            out[f] = parsed if isinstance(parsed, dict) else {}
        elif raw is None:
            out[f] = {}
    return out


class ProfileStore:
    """
    Хранилище профилей, журнала синхронизации и кэшей (оценки, идентичность).
    path=None - только в памяти; иначе состояние целиком пишется в JSON-файл.
    Ключ каждой записи профиля - studentId; поле id сохраняется при upsert.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self.write_count = 0
        state = load_json(self.path, None) if self.path is not None else None
        self._state = _empty_state()
        if isinstance(state, dict):
            for k, v in state.items():
                if k == "profiles" and isinstance(v, dict):
                    self._state["profiles"].update(v)
                elif k in self._state:
                    self._state[k] = v

    def _draft(self) -> Dict[str, Any]:
        # изменения делаются на копии; текущее состояние заменяется только после записи
        return copy.deepcopy(self._state)

    def _commit(self, state: Dict[str, Any]) -> None:
        if self.path is not None:
            save_json(self.path, state)
        self._state = state
        self.write_count += 1

    # --- студенты (базовая карточка, внешняя сущность) ---

    def get_student(self, student_id: str) -> Optional[Dict[str, Any]]:
        row = self._state["students"].get(student_id)
        return copy.deepcopy(row) if row is not None else None

    def upsert_student(self, student: Dict[str, Any]) -> None:
        sid = str(student.get("id", "") or "").strip()
        if not sid:
            raise ValueError("student record requires an id")
        state = self._draft()
        state["students"][sid] = copy.deepcopy(student)
        self._commit(state)

    def list_student_ids(self) -> List[str]:
        ids = set(self._state["students"].keys())
        for rows in self._state["profiles"].values():
            ids.update(rows.keys())
        return sorted(ids)

    def delete_student(self, student_id: str) -> None:
        # каскад: профили, инциденты, кэши; журнал синхронизации не трогаем
        state = self._draft()
        state["students"].pop(student_id, None)
        for rows in state["profiles"].values():
            rows.pop(student_id, None)
        state["behavior_incidents"].pop(student_id, None)
        state["aggregate_scores"].pop(student_id, None)
        state["identities"].pop(student_id, None)
        self._commit(state)

    # --- профили по доменам ---

    def get_profile(self, student_id: str, domain: Domain | str) -> Optional[Dict[str, Any]]:
        domain = parse_domain(domain)
        row = self._state["profiles"].get(domain.value, {}).get(student_id)
        if row is None:
            return None
        return _decode_row(domain, copy.deepcopy(row))

    def has_profile(self, student_id: str, domain: Domain | str) -> bool:
        domain = parse_domain(domain)
        return student_id in self._state["profiles"].get(domain.value, {})

    def upsert_profile(self, domain: Domain | str, profile: Dict[str, Any]) -> None:
        domain = parse_domain(domain)
        if domain not in STORED_DOMAINS:
            raise ValueError(f"domain {domain.value!r} has no profile table")
        sid = profile.get("studentId")
        if not sid:
            raise ValueError("profile requires studentId")
        state = self._draft()
        rows = state["profiles"].setdefault(domain.value, {})
        existing = rows.get(sid)
        row = _encode_row(domain, profile)
        if existing is not None and existing.get("id"):
            row["id"] = existing["id"]
        rows[sid] = row
        self._commit(state)

    def get_all_profiles(self, student_id: str) -> Dict[Domain, Optional[Dict[str, Any]]]:
        return {d: self.get_profile(student_id, d) for d in STORED_DOMAINS}

    # --- инциденты поведения (сырые записи) ---

    def list_behavior_incidents(self, student_id: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._state["behavior_incidents"].get(student_id, []))

    def add_behavior_incident(self, student_id: str, incident: Dict[str, Any]) -> None:
        state = self._draft()
        state["behavior_incidents"].setdefault(student_id, []).append(copy.deepcopy(incident))
        self._commit(state)

    # --- журнал синхронизации (только добавление) ---

    def append_sync_log(self, entry: Dict[str, Any]) -> None:
        state = self._draft()
        state["sync_logs"].append(copy.deepcopy(entry))
        self._commit(state)

    def list_sync_logs(self, student_id: Optional[str] = None) -> List[Dict[str, Any]]:
        logs = self._state["sync_logs"]
        if student_id is not None:
            logs = [e for e in logs if e.get("studentId") == student_id]
        return copy.deepcopy(logs)

    # --- кэш агрегированных оценок: upsert по studentId ---

    def save_aggregate_scores(self, student_id: str, row: Dict[str, Any]) -> None:
        state = self._draft()
        state["aggregate_scores"][student_id] = copy.deepcopy(row)
        self._commit(state)

    def get_aggregate_scores(self, student_id: str) -> Optional[Dict[str, Any]]:
        row = self._state["aggregate_scores"].get(student_id)
        return copy.deepcopy(row) if row is not None else None

    # --- кэш "кто этот ученик": upsert по studentId ---

    def save_identity(self, identity: Dict[str, Any]) -> None:
        sid = identity.get("studentId")
        if not sid:
            raise ValueError("identity requires studentId")
        state = self._draft()
        state["identities"][sid] = copy.deepcopy(identity)
        self._commit(state)

    def get_identity(self, student_id: str) -> Optional[Dict[str, Any]]:
        row = self._state["identities"].get(student_id)
        return copy.deepcopy(row) if row is not None else None
