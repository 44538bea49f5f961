from __future__ import annotations
import pandas as pd
from io import BytesIO
from typing import Any, Dict, List, Optional

# Заголовки листа сравнения (колонки DataFrame -> подписи в отчёте)
COMPARISON_HEADERS = {
    "rank": "Sıra",
    "student_id": "Öğrenci No",
    "name": "Ad Soyad",
    "class": "Sınıf",
    "academic_score": "Akademik",
    "social_emotional_score": "Sosyal-Duygusal",
    "talents_interests_score": "Yetenek ve İlgi",
    "health_wellness_score": "Sağlık",
    "behavior_score": "Davranış",
    "motivation_score": "Motivasyon",
    "risk_score": "Risk",
    "protective_score": "Koruyucu",
    "overall_score": "Genel Skor",
    "completeness": "Profil Tamlığı (%)",
}


def completeness_frame(reports: List[Dict[str, Any]]) -> pd.DataFrame:
    rows = []
    for rep in reports:
        missing = "; ".join(f"{m['category']}: {', '.join(m['fields'])}" for m in rep.get("missing_fields", []))
        row = {"Öğrenci No": rep["student_id"], "Genel (%)": rep["overall"]}
        for domain, pct in rep["domains"].items():
            row[domain] = pct
        row["Eksik Alanlar"] = missing
        rows.append(row)
    return pd.DataFrame(rows)


def quality_frame(reports: List[Dict[str, Any]]) -> pd.DataFrame:
    # одна строка на (ученик, раздел)
    rows = []
    for rep in reports:
        for section in rep["profiles"].values():
            rows.append({
                "Öğrenci No": rep["student_id"],
                "Bölüm": section["profile_type"],
                "Kalite Skoru": section["quality_score"],
                "Durum": section["status"],
                "Eksik Kritik Alanlar": ", ".join(section["missing_critical_fields"]),
                "Eksik Opsiyonel Alanlar": ", ".join(section["missing_optional_fields"]),
                "Veri Sorunları": "; ".join(section["data_quality_issues"]),
                "Öneriler": "; ".join(section["recommendations"]),
            })
    return pd.DataFrame(rows)


def export_report_bytes(
    comparison_df: pd.DataFrame,
    completeness_reports: Optional[List[Dict[str, Any]]] = None,
    quality_reports: Optional[List[Dict[str, Any]]] = None,
) -> bytes:
    bio = BytesIO()

    ranking_df = comparison_df.rename(columns=COMPARISON_HEADERS) if comparison_df is not None else pd.DataFrame()
    compl_df = completeness_frame(completeness_reports or [])
    qual_df = quality_frame(quality_reports or [])

    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        ranking_df.to_excel(writer, index=False, sheet_name="Karşılaştırma")
        if not compl_df.empty:
            compl_df.to_excel(writer, index=False, sheet_name="Profil Tamlığı")
        if not qual_df.empty:
            qual_df.to_excel(writer, index=False, sheet_name="Profil Kalitesi")

        wb = writer.book
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})
        fmt_excellent = wb.add_format({"border": 1, "valign": "top", "bg_color": "#E6F4EA"})
        fmt_fair = wb.add_format({"border": 1, "valign": "top", "bg_color": "#FEF7E0"})
        fmt_bad = wb.add_format({"border": 1, "valign": "top", "bg_color": "#FCE8E6"})

        def format_df_sheet(sheet_name: str, df: pd.DataFrame, default_width: int = 16, max_width: int = 60):
            ws = writer.sheets.get(sheet_name)
            if ws is None:
                return
            ws.freeze_panes(1, 0)
            ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
            for col, name in enumerate(df.columns):
                ws.write(0, col, name, fmt_header)
                w = max(10, min(max_width, int(len(str(name)) * 1.2) + 6))
                ws.set_column(col, col, max(default_width, w))

        format_df_sheet("Karşılaştırma", ranking_df, default_width=14, max_width=30)

        if not compl_df.empty:
            format_df_sheet("Profil Tamlığı", compl_df, default_width=14, max_width=80)
            ws = writer.sheets["Profil Tamlığı"]
            j = list(compl_df.columns).index("Eksik Alanlar")
            ws.set_column(j, j, 80)

        if not qual_df.empty:
            format_df_sheet("Profil Kalitesi", qual_df, default_width=18, max_width=60)
            wsq = writer.sheets["Profil Kalitesi"]
            cols_q = list(qual_df.columns)
            jst = cols_q.index("Durum")
            last_row = len(qual_df)
            for value, fmt in (("excellent", fmt_excellent), ("good", fmt_excellent),
                               ("fair", fmt_fair), ("poor", fmt_bad), ("incomplete", fmt_bad)):
                wsq.conditional_format(1, jst, last_row, jst, {
                    "type": "cell",
                    "criteria": "equal to",
                    "value": f'"{value}"',
                    "format": fmt,
                })
            for nm in ("Öneriler", "Veri Sorunları", "Eksik Opsiyonel Alanlar"):
                j = cols_q.index(nm)
                wsq.set_column(j, j, 60)

    return bio.getvalue()
