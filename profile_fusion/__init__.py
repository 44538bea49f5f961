"""
Этот пакет содержит:
- сопоставление инсайтов с каноническими полями профилей (mapping)
- слияние доменных профилей ученика (merge)
- разрешение конфликтов данных (conflicts)
- расчёт оценок и полноты профиля (aggregate, scoring)
- проверку качества профилей (quality)
- оркестратор обновления профиля и хуки событий (orchestrator, hooks)
- экспорт отчётов
"""
from .domains import Domain
from .store import ProfileStore
from .mapping import map_insights, map_insights_to_fields
from .utils import normalize_date, normalize_score
from .merge import update_domain, DomainUpdateError, UnknownDomainError
from .conflicts import resolve_conflicts, split_conflicts
from .scoring import (calculate_unified_scores, calculate_profile_completeness, save_aggregate_scores,
                      get_saved_aggregate_scores, compare_students)
from .quality import generate_student_quality_report, build_student_quality_report
from .initializer import initialize_all_profiles, initialize_missing_profiles, check_profiles_exist
from .hooks import AutoSyncHooks
from .orchestrator import ProfileUpdateOrchestrator
from .export import export_report_bytes

__all__ = [
    "Domain",
    "ProfileStore",
    "map_insights",
    "map_insights_to_fields",
    "normalize_date",
    "normalize_score",
    "update_domain",
    "DomainUpdateError",
    "UnknownDomainError",
    "resolve_conflicts",
    "split_conflicts",
    "calculate_unified_scores",
    "calculate_profile_completeness",
    "save_aggregate_scores",
    "get_saved_aggregate_scores",
    "compare_students",
    "generate_student_quality_report",
    "build_student_quality_report",
    "initialize_all_profiles",
    "initialize_missing_profiles",
    "check_profiles_exist",
    "AutoSyncHooks",
    "ProfileUpdateOrchestrator",
    "export_report_bytes",
]
