from __future__ import annotations
import os
import re
import json
import math
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional, List
from dateutil import parser as dtparser

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

APPDATA = os.environ.get("APPDATA")
if os.environ.get("PROFILE_FUSION_DATA_DIR"):
    USER_DATA_DIR = Path(os.environ["PROFILE_FUSION_DATA_DIR"])
elif APPDATA:
    USER_DATA_DIR = Path(APPDATA) / "ProfileFusion" / "data"
else:
    USER_DATA_DIR = DEFAULT_DATA_DIR  # fallback

def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception:
        return default

def save_json(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)

_DASH_CHARS_RE = re.compile(r"[\u2010\u2011\u2012\u2013\u2014\u2212]")
_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")  # NBSP варианты
_KEY_SEP_RE = re.compile(r"[_\s]+")


def norm_text(s: Any) -> str:
    """
    Универсальная нормализация текста:
    - lower (с учётом турецких İ/I)
    - BOM/неразрывные пробелы
    - внешние кавычки
    - все виды тире -> '-'
    - схлопывание пробелов
    """
    if s is None:
        return ""

    s = str(s)

    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    s = s.strip()
    # убрать внешние кавычки
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    # "İ".lower() в Python даёт "i̇" (с комбинирующей точкой)
    s = s.replace("\u0130", "i").lower()
    s = _DASH_CHARS_RE.sub("-", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s

def norm_key(s: Any) -> str:
    # Ключ инсайта для сравнения с алиасом: без подчёркиваний и пробелов, в нижнем регистре
    if s is None:
        return ""
    return _KEY_SEP_RE.sub("", str(s).replace("\u0130", "i")).lower()

def as_float(x: Any, default: Optional[float] = None) -> Optional[float]:
    try:
        if x is None or isinstance(x, bool):
            return default
        if isinstance(x, (int, float)):
            v = float(x)
        else:
            s = str(x).replace(",", ".").strip()
            if not s:
                return default
            v = float(s)
        if math.isnan(v) or math.isinf(v):
            return default
        return v
    except (TypeError, ValueError):
        return default

def as_number(x: Any) -> Optional[float | int]:
    # Число для хранения в профиле: целые остаются int
    v = as_float(x)
    if v is None:
        return None
    return int(v) if v.is_integer() else v

def as_bool(x: Any) -> Optional[bool]:
    if x is None:
        return None
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return x != 0
    t = norm_text(x)
    if t in ("true", "1", "yes", "evet", "var", "e", "y"):
        return True
    if t in ("false", "0", "no", "hayır", "hayir", "yok", "h", "n"):
        return False
    return None

def ensure_list(value: Any) -> List[Any]:
    """
    Значение поля-списка всегда список:
      - list/tuple -> list
      - строка с JSON-массивом -> массив
      - прочая непустая строка/скаляр -> [value]
      - None/"" -> []
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return []
        if s.startswith("["):
            try:
                parsed = json.loads(s)
            except ValueError:
                return [value]
            return parsed if isinstance(parsed, list) else [value]
        return [value]
    return [value]

def is_filled(value: Any) -> bool:
    # Поле считается заполненным, если значение не пустое и не нулевое
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return True

def today() -> date:
    return date.today()

def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")

# Относительные даты (tr/en): фраза -> сдвиг в днях
RELATIVE_DATES = [
    (("bugün", "today"), 0),
    (("dün", "yesterday"), 1),
    (("geçen hafta", "gecen hafta", "last week"), 7),
]

def normalize_date(value: Any) -> Optional[str]:
    # "bugün"/"yesterday"/"geçen hafta" -> ISO дата; иначе dateutil; иначе None
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    # голое число - не дата (dateutil принял бы его за день текущего месяца)
    if isinstance(value, (int, float)):
        return None

    txt = norm_text(value)
    if not txt or txt.isdigit():
        return None

    for phrases, days_back in RELATIVE_DATES:
        # фраза целым словом: "dünya" - не "dün"
        if any(re.search(rf"(?<!\w){re.escape(p)}(?!\w)", txt) for p in phrases):
            return (today() - timedelta(days=days_back)).isoformat()

    # yyyy-mm-dd (ISO) разбираем как есть, остальное day-first (dd.mm.yyyy)
    dayfirst = not re.match(r"^\d{4}[./-]\d{1,2}[./-]\d{1,2}", txt)
    try:
        dt = dtparser.parse(str(value).strip(), dayfirst=dayfirst)
    except (ValueError, OverflowError, TypeError):
        return None
    return dt.date().isoformat()

def is_valid_date(value: Any) -> bool:
    if not value:
        return False
    try:
        dtparser.parse(str(value).strip())
    except (ValueError, OverflowError, TypeError):
        return False
    return True

def round_half_up(x: float) -> int:
    # 0.5 всегда вверх (round() в Python округляет к чётному)
    return int(math.floor(x + 0.5))

def normalize_score(value: Any) -> Optional[float | int]:
    # Сжимает в [0, 100]; не число -> None
    v = as_number(value)
    if v is None:
        return None
    return max(0, min(100, v))

def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"

def store_path() -> Path:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
    return USER_DATA_DIR / "store.json"
