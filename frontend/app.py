"""
xAPI Learning Insights Dashboard
Run with: streamlit run frontend/app.py
"""

import sys
import logging
import requests
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

import streamlit as st

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from backend.aggregator import create_dashboard_summary, create_period_comparison
from backend.cache import SummaryCache
from backend.config import COURSERA_PROFILE, LRSSettings, load_provider_profiles
from backend.export import export_summary
from backend.validator import (
    BUNDLE_COLLECTIONS,
    StatementValidationError,
    deduplicate_statements,
    is_valid_email,
    validate_batch,
)
from backend.xapi_client import MOCK_COURSE_ID, MockXAPIClient, XAPIClient
from frontend import figures
from frontend.components import (
    CATEGORY_COLORS,
    anomaly_banner,
    connection_status_badge,
    data_quality_badge,
    inject_css,
    insight_card,
    metric_card,
    period_comparison_row,
    scores_table,
    section_header,
    sessions_table,
    show_figure,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Learning Insights",
    layout="wide",
    initial_sidebar_state="expanded",
)

inject_css()


@st.cache_resource
def load_profiles() -> Dict:
    profiles = load_provider_profiles()
    profiles.setdefault(COURSERA_PROFILE.name, COURSERA_PROFILE)
    return profiles


settings = LRSSettings.from_env()
profiles = load_profiles()

if "_insights_cache" not in st.session_state:
    st.session_state["_insights_cache"] = {}
cache = SummaryCache(ttl_seconds=settings.cache_ttl, store=st.session_state["_insights_cache"])


def get_client(endpoint: str, username: str, password: str, token: str, use_mock: bool):
    if use_mock:
        return MockXAPIClient(seed=42)
    return XAPIClient(endpoint=endpoint, username=username, password=password, token=token)


def load_bundle(client, user_email: str, course_id: str, profile_name: str) -> Dict:
    key = cache.make_key("bundle", endpoint=client.endpoint, user=user_email, course=course_id, profile=profile_name)
    return cache.cached(key, client.get_dashboard_data, user_email, course_id, profiles[profile_name])


def bundle_statements(bundle: Dict) -> List[Dict]:
    collected = []
    for section, key in BUNDLE_COLLECTIONS:
        collected.extend((bundle.get(section) or {}).get(key) or [])
    return deduplicate_statements(validate_batch(collected)["valid"])


# ─────────────────────────────────────────────────────────────────────────────
# SIDEBAR
# ─────────────────────────────────────────────────────────────────────────────

with st.sidebar:
    st.markdown("""
    <div style="margin-bottom:20px;padding-bottom:16px;border-bottom:1px solid #1E2235;">
        <div style="font-size:16px;font-weight:700;color:#E8EAF6;">Learning Insights</div>
        <div style="font-size:11px;color:#4A5068;">xAPI course analytics</div>
    </div>
    """, unsafe_allow_html=True)

    st.markdown("#### LRS Connection")

    use_mock = st.toggle("Use Mock / Demo Data", value=not settings.is_configured,
                         help="Toggle off to connect to a real LRS")

    if not use_mock:
        lrs_endpoint = st.text_input("LRS Endpoint", value=settings.endpoint, help="Base xAPI endpoint URL")
        auth_method = st.radio("Auth Method", ["Basic Auth", "Bearer Token"], horizontal=True,
                               index=1 if settings.token else 0)
        if auth_method == "Basic Auth":
            lrs_username = st.text_input("Username", value=settings.username)
            lrs_password = st.text_input("Password", type="password", value=settings.password)
            lrs_token = ""
        else:
            lrs_token = st.text_input("Bearer Token", type="password", value=settings.token)
            lrs_username = lrs_password = ""
    else:
        lrs_endpoint = lrs_username = lrs_password = lrs_token = ""

    st.divider()

    st.markdown("#### Learner")
    user_email = st.text_input("Learner email", value="learner@example.com")
    course_id = st.text_input("Course activity id", value=MOCK_COURSE_ID)
    profile_names = sorted(profiles)
    profile_name = st.selectbox(
        "Provider profile",
        profile_names,
        index=profile_names.index(settings.provider) if settings.provider in profile_names else 0,
    )

    st.divider()

    st.markdown("#### Analysis")
    period = st.selectbox("Comparison period", ["week", "month", "quarter"], index=0)
    strict = st.toggle("Strict validation", value=False,
                       help="Stop on the first malformed statement instead of skipping it")

    st.divider()

    st.markdown("#### Cache")
    cache_stats = cache.stats()
    st.caption(f"{cache_stats['alive_keys']} keys cached · TTL {cache_stats['ttl_seconds']}s")
    if st.button("Clear cache & refresh", use_container_width=True):
        cache.clear_all()
        st.rerun()

# ─────────────────────────────────────────────────────────────────────────────
# MAIN — Load data
# ─────────────────────────────────────────────────────────────────────────────

if not is_valid_email(user_email):
    st.error("Enter a valid learner email address.")
    st.stop()

client = get_client(lrs_endpoint, lrs_username, lrs_password, lrs_token, use_mock)
connected = client.ping()
now = datetime.now(timezone.utc)

try:
    with st.spinner("Loading statements from LRS…"):
        bundle = load_bundle(client, user_email, course_id, profile_name)
except requests.exceptions.RequestException as e:
    st.error(f"LRS error: {e}")
    st.stop()

try:
    with st.spinner("Computing insights…"):
        summary = create_dashboard_summary(bundle, now=now, profile=profiles[profile_name], strict=strict)
        comparison = create_period_comparison(bundle_statements(bundle), now, period, profiles[profile_name])
except (StatementValidationError, ValueError) as e:
    st.error(f"Invalid statement data: {e}")
    st.stop()

overview = summary["overview"]
progress = summary["progress"]
scores = summary["scores"]
engagement = summary["engagement"]
charts = summary["charts"]

# ─────────────────────────────────────────────────────────────────────────────
# HEADER
# ─────────────────────────────────────────────────────────────────────────────

col_title, col_status = st.columns([3, 1])
with col_title:
    st.markdown("""
    <div style="margin-bottom: 4px;">
        <span style="font-size: 28px; font-weight: 800; color: #E8EAF6;">Learning Insights</span>
        <span style="font-size: 14px; color: #4A5068; margin-left: 12px;">Course progress dashboard</span>
    </div>
    """, unsafe_allow_html=True)
    st.caption(
        f"{user_email} · {overview['total_statements']:,} statements"
        f" · {overview['invalid_statements']} skipped · updated {overview['last_updated']}"
    )
    data_quality_badge(overview["data_quality"])

with col_status:
    st.markdown("<div style='margin-top:14px;text-align:right;'>", unsafe_allow_html=True)
    connection_status_badge(connected, lrs_endpoint if not use_mock else "Mock LRS")
    st.markdown("</div>", unsafe_allow_html=True)

st.divider()

anomaly_banner(summary["anomalies"])

# ── KPI cards ────────────────────────────────────────────────────────────────
k1, k2, k3, k4 = st.columns(4)
with k1:
    metric_card("Progress", progress["percentage"], "%", category="progress",
                description=f"{progress['completed']} of {progress['total']} activities")
with k2:
    metric_card("Average Score", scores["average"], "%", category="performance",
                change=comparison["changes"]["average_score"],
                description=f"trend: {scores['trend']} · pass rate {scores['pass_rate']}%")
with k3:
    metric_card("Current Streak", engagement["current_streak"], "days", category="engagement",
                description=f"longest {engagement['longest_streak']} · {engagement['total_active_days']} active days")
with k4:
    metric_card("Video Time", engagement["total_video_time_formatted"], category="habits",
                description=f"{engagement['video_interactions']} videos · {engagement['session_count']} sessions")

period_comparison_row(comparison)

tab_overview, tab_perf, tab_engage, tab_timeline, tab_export = st.tabs([
    "Overview",
    "Performance",
    "Engagement",
    "Timeline",
    "Export",
])

# ─────────────────────────────────────────────────────────────────────────────
# TAB 1 — OVERVIEW
# ─────────────────────────────────────────────────────────────────────────────

with tab_overview:
    col_chart, col_insights = st.columns([1, 2])
    with col_chart:
        show_figure(figures.progress_donut(charts["progress"]), empty=progress["total"] == 0,
                    empty_text="No course activity yet")
    with col_insights:
        section_header("Insights", len(summary["insights"]), CATEGORY_COLORS["progress"])
        for insight in summary["insights"]:
            insight_card(insight)
        if not summary["insights"]:
            st.caption("No insights for this learner yet")

    section_header("Completed Modules", len(progress["module_completions"]), CATEGORY_COLORS["progress"])
    for module in progress["module_completions"]:
        st.markdown(f"- **{module['name']}** · {module['completed_at'] or 'unknown date'}")

# ─────────────────────────────────────────────────────────────────────────────
# TAB 2 — PERFORMANCE
# ─────────────────────────────────────────────────────────────────────────────

with tab_perf:
    c1, c2 = st.columns(2)
    with c1:
        show_figure(figures.score_line(charts["scores"]), empty=not scores["scores"])
    with c2:
        show_figure(figures.distribution_bars(charts["distribution"]), empty=scores["total_attempts"] == 0)
    section_header("Scored Activities", len(scores["scores"]), CATEGORY_COLORS["performance"])
    scores_table(scores["scores"])

# ─────────────────────────────────────────────────────────────────────────────
# TAB 3 — ENGAGEMENT
# ─────────────────────────────────────────────────────────────────────────────

with tab_engage:
    c1, c2 = st.columns(2)
    with c1:
        show_figure(figures.engagement_radar(charts["engagement"]))
    with c2:
        show_figure(figures.weekday_bars(charts["weekdays"]), empty=not summary["timeline"])
    show_figure(figures.activity_heatmap(charts["heatmap"]))
    section_header("Study Sessions", engagement["session_count"], CATEGORY_COLORS["engagement"])
    st.caption(
        f"Average {engagement['average_session_length_formatted']}"
        f" · longest {engagement['longest_session_formatted']}"
    )
    sessions_table(engagement["study_sessions"])

# ─────────────────────────────────────────────────────────────────────────────
# TAB 4 — TIMELINE
# ─────────────────────────────────────────────────────────────────────────────

with tab_timeline:
    show_figure(figures.timeline_bars(charts["timeline"]), empty=not summary["timeline"])
    for month_key, month in sorted(charts["calendar"].items(), reverse=True):
        with st.expander(f"{month['month']} · {len(month['days'])} active days"):
            for day, info in sorted(month["days"].items(), reverse=True):
                avg = f"{info['average_score']}%" if info["average_score"] is not None else "–"
                st.markdown(
                    f"`{day}` · {info['activities']} activities · {info['completions']} completions"
                    f" · avg {avg} · video {info['video_time']}"
                )

# ─────────────────────────────────────────────────────────────────────────────
# TAB 5 — EXPORT
# ─────────────────────────────────────────────────────────────────────────────

with tab_export:
    st.download_button(
        "Download summary (JSON)",
        data=export_summary(summary, "json"),
        file_name=f"learning_summary_{now:%Y%m%d}.json",
        mime="application/json",
    )
    st.download_button(
        "Download timeline (CSV)",
        data=export_summary(summary, "csv"),
        file_name=f"learning_timeline_{now:%Y%m%d}.csv",
        mime="text/csv",
    )
    with st.expander("Raw overview"):
        st.json(overview)
