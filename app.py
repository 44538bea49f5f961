from __future__ import annotations
import json
import streamlit as st
import pandas as pd
from profile_fusion.store import ProfileStore
from profile_fusion.domains import Domain, STORED_DOMAINS
from profile_fusion.collaborators import InMemorySuggestionQueue, DATA_SOURCES, STATUS_PENDING
from profile_fusion.orchestrator import ProfileUpdateOrchestrator
from profile_fusion.hooks import AutoSyncHooks
from profile_fusion.initializer import initialize_all_profiles, initialize_missing_profiles, check_profiles_exist
from profile_fusion.scoring import (calculate_unified_scores, calculate_profile_completeness, save_aggregate_scores,
                                    compare_students)
from profile_fusion.quality import build_student_quality_report
from profile_fusion.export import export_report_bytes
from profile_fusion.utils import store_path

st.set_page_config(page_title="Öğrenci Profili", layout="wide")
st.title("Öğrenci profili birleştirme ve skorlama")

# =========================
# Состояние сессии: одно хранилище и одна очередь на процесс консоли
# =========================
if "store" not in st.session_state:
    st.session_state["store"] = ProfileStore(store_path())
if "queue" not in st.session_state:
    st.session_state["queue"] = InMemorySuggestionQueue()

store: ProfileStore = st.session_state["store"]
queue: InMemorySuggestionQueue = st.session_state["queue"]
orchestrator = ProfileUpdateOrchestrator(store, queue=queue)
hooks = AutoSyncHooks(queue)

DOMAIN_LABELS = {
    Domain.ACADEMIC: "Akademik",
    Domain.SOCIAL_EMOTIONAL: "Sosyal-Duygusal",
    Domain.TALENTS_INTERESTS: "Yetenek ve İlgi",
    Domain.HEALTH: "Sağlık",
    Domain.MOTIVATION: "Motivasyon",
    Domain.RISK_FACTORS: "Risk ve Koruyucu Faktörler",
}

# =========================
# Öğrenci kaydı
# =========================
with st.expander("Öğrenci ekle", expanded=False):
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        new_id = st.text_input("Öğrenci No", value="")
    with c2:
        new_ad = st.text_input("Ad", value="")
    with c3:
        new_soyad = st.text_input("Soyad", value="")
    with c4:
        new_class = st.text_input("Sınıf", value="")
    init_profiles = st.checkbox("Standart profilleri oluştur", value=True)

    if st.button("Kaydet"):
        if not new_id.strip():
            st.error("Öğrenci No zorunlu")
        else:
            sid = new_id.strip()
            store.upsert_student({"id": sid, "ad": new_ad.strip(), "soyad": new_soyad.strip(), "class": new_class.strip()})
            if init_profiles:
                initialize_all_profiles(store, sid)
            st.success("Kaydedildi.")

student_ids = store.list_student_ids()
if not student_ids:
    st.warning("Önce öğrenci ekleyin.")
    st.stop()

student_id = st.selectbox("Öğrenci", student_ids)

exists = check_profiles_exist(store, student_id)
missing_profiles = [DOMAIN_LABELS.get(Domain(d), d) for d, ok in exists.items() if not ok]
if missing_profiles:
    st.info("Eksik profiller: " + ", ".join(missing_profiles))
    if st.button("Eksik profilleri oluştur"):
        created = initialize_missing_profiles(store, student_id)
        st.success(f"{len(created)} profil oluşturuldu.")

# =========================
# Yeni gözlem
# =========================
st.subheader("Yeni gözlem")
g1, g2 = st.columns([1, 2])
with g1:
    source = st.selectbox("Kaynak", list(DATA_SOURCES))
    source_id = st.text_input("Kaynak kaydı No", value="")
    make_suggestion = st.checkbox("Onay kuyruğuna öneri de oluştur", value=False)
with g2:
    raw_text = st.text_area("Veri (JSON)", value='{"hobi": "satranç"}', height=160)

if st.button("Profili güncelle", type="primary"):
    try:
        raw_data = json.loads(raw_text) if raw_text.strip() else {}
    except ValueError as e:
        st.error(f"JSON okunamadı: {e}")
        raw_data = None

    if raw_data is not None:
        result = orchestrator.process_data_update({
            "studentId": student_id,
            "source": source,
            "sourceId": source_id or None,
            "rawData": raw_data,
        })
        if result["success"]:
            st.success(result["message"])
        else:
            st.error(result["message"])
        if result["failed_domains"]:
            st.warning("Güncellenemeyen alanlar: " + ", ".join(f["domain"] for f in result["failed_domains"]))
        if result["escalated_conflicts"]:
            st.warning(f"{len(result['escalated_conflicts'])} yüksek önemli çelişki onaya gönderildi.")

        if make_suggestion and isinstance(raw_data, dict):
            event = dict(raw_data)
            event.setdefault("studentId", student_id)
            event.setdefault("id", source_id or None)
            handler = hooks.handlers().get(source)
            if handler is not None:
                handler(event)

# =========================
# Profiller
# =========================
st.subheader("Profiller")
tabs = st.tabs([DOMAIN_LABELS[d] for d in STORED_DOMAINS])
for tab, domain in zip(tabs, STORED_DOMAINS):
    with tab:
        profile = store.get_profile(student_id, domain)
        if profile is None:
            st.caption("Profil oluşturulmamış.")
        else:
            st.json(profile)

# =========================
# Skorlar, tamlık, kalite
# =========================
st.subheader("Skorlar")
scores = calculate_unified_scores(store, student_id)
agg = scores["aggregate"]
m = st.columns(5)
m[0].metric("Akademik", scores["academic_score"])
m[1].metric("Sosyal-Duygusal", scores["social_emotional_score"])
m[2].metric("Davranış", scores["behavior_score"])
m[3].metric("Motivasyon", scores["motivation_score"])
m[4].metric("Risk", scores["risk_score"])
st.caption(f"Genel skor: {agg['overall_score']}")
if st.button("Skorları kaydet"):
    save_aggregate_scores(store, student_id, scores)
    st.success("Kaydedildi.")

with st.expander("Skor ayrıntıları", expanded=False):
    st.json(agg["score_breakdown"])

completeness = calculate_profile_completeness(store, student_id)
st.subheader(f"Profil tamlığı: %{completeness['overall']}")
st.dataframe(pd.DataFrame([completeness["domains"]]), width="stretch")
for item in completeness["missing_fields"]:
    st.write(f"**{item['category']}**: " + ", ".join(item["fields"]))

quality = build_student_quality_report(store, student_id)
st.subheader(f"Profil kalitesi: {quality['overall_quality']}")
qrows = [{
    "Bölüm": r["profile_type"],
    "Skor": r["quality_score"],
    "Durum": r["status"],
    "Eksik kritik": ", ".join(r["missing_critical_fields"]),
} for r in quality["profiles"].values()]
st.dataframe(pd.DataFrame(qrows), width="stretch")
if quality["critical_warnings"]:
    with st.expander("Kritik uyarılar", expanded=True):
        for w in quality["critical_warnings"]:
            st.write("- " + w)
if quality["action_items"]:
    with st.expander("Yapılacaklar", expanded=False):
        for a in quality["action_items"]:
            st.write("- " + a)

# =========================
# Onay kuyruğu ve senkronizasyon günlüğü
# =========================
st.subheader("Onay bekleyen öneriler")
pending = queue.list_suggestions(student_id=student_id, status=STATUS_PENDING)
if not pending:
    st.caption("Bekleyen öneri yok.")
for s in pending:
    with st.expander(f"[{s['priority']}] {s['title']}", expanded=False):
        st.write(s.get("description", ""))
        if s.get("proposedChanges"):
            st.dataframe(pd.DataFrame(s["proposedChanges"]), width="stretch")
        a1, a2 = st.columns(2)
        if a1.button("Onayla", key=f"{s['id']}__ok"):
            queue.review(s["id"], approved=True)
            st.success("Onaylandı.")
        if a2.button("Reddet", key=f"{s['id']}__no"):
            queue.review(s["id"], approved=False)
            st.info("Reddedildi.")

with st.expander("Senkronizasyon günlüğü", expanded=False):
    logs = store.list_sync_logs(student_id)
    if logs:
        st.dataframe(pd.DataFrame(logs).drop(columns=["extractedInsights"], errors="ignore"), width="stretch")
    else:
        st.caption("Kayıt yok.")

# =========================
# Sınıf karşılaştırması
# =========================
st.subheader("Karşılaştırma")
selected = st.multiselect("Öğrenciler", student_ids, default=student_ids)
if selected:
    cmp_df = compare_students(store, selected)
    st.dataframe(cmp_df, width="stretch")

    xbytes = export_report_bytes(
        cmp_df,
        completeness_reports=[calculate_profile_completeness(store, sid) for sid in selected],
        quality_reports=[build_student_quality_report(store, sid) for sid in selected],
    )
    st.download_button(
        "Excel raporunu indir",
        data=xbytes,
        file_name="ogrenci_profil_raporu.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
