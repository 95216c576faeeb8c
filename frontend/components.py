"""
Reusable Streamlit UI components for the learning insights dashboard.
"""

import streamlit as st
import plotly.graph_objects as go
import pandas as pd
from typing import Dict, List, Optional, Any

# ─────────────────────────────────────────────
# COLOR PALETTE
# ─────────────────────────────────────────────

CATEGORY_COLORS = {
    "progress": "#A855F7",
    "performance": "#EC4899",
    "engagement": "#4F8EF7",
    "habits": "#22C55E",
    "quality": "#14B8A6",
}

INSIGHT_COLORS = {
    "success": ("#052E16", "#166534", "#4ADE80"),
    "warning": ("#2D1A05", "#92400E", "#FBBF24"),
    "info": ("#0B1B33", "#1E3A8A", "#93C5FD"),
}

RISK_COLORS = {
    "none": "#22C55E",
    "low": "#FBBF24",
    "medium": "#F97316",
    "high": "#EF4444",
}


def _category_rules() -> str:
    return "\n".join(
        f"        .li-card.{name} {{ border-left-color: {color}; }}" for name, color in CATEGORY_COLORS.items()
    )


def inject_css():
    """Dark theme for the dashboard; card accents follow CATEGORY_COLORS."""
    st.markdown(f"""
    <style>
        @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;600;800&family=JetBrains+Mono:wght@500&display=swap');

        html, body, [class*="css"] {{ font-family: 'Inter', sans-serif; }}
        .stApp {{ background: #0B0E17; }}
        section[data-testid="stSidebar"] {{ background: #10131D; }}

        .li-card {{
            background: #141827;
            border: 1px solid #1F2538;
            border-left: 4px solid #4F8EF7;
            border-radius: 8px;
            padding: 16px 18px;
            margin-bottom: 12px;
        }}
{_category_rules()}
        .li-label {{ font-size: 11px; font-weight: 600; text-transform: uppercase; color: #7A83A3; }}
        .li-value {{ font-size: 30px; font-weight: 800; color: #EEF0FA; font-family: 'JetBrains Mono', monospace; }}
        .li-unit {{ font-size: 13px; color: #7A83A3; margin-left: 4px; }}
        .li-desc {{ font-size: 11px; color: #555D7A; margin-top: 6px; }}
        .li-up {{ font-size: 12px; color: #4ADE80; }}
        .li-down {{ font-size: 12px; color: #F87171; }}
        .li-flat {{ font-size: 12px; color: #7A83A3; }}

        .li-section {{ display: flex; align-items: baseline; gap: 8px; margin: 24px 0 12px 0; }}
        .li-section-title {{ font-size: 14px; font-weight: 800; text-transform: uppercase; }}
        .li-section-count {{ font-size: 11px; color: #7A83A3; }}
    </style>
    """, unsafe_allow_html=True)


# ─────────────────────────────────────────────
# CARDS
# ─────────────────────────────────────────────

def metric_card(
    label: str,
    value: Any,
    unit: str = "",
    change: Optional[int] = None,
    description: str = "",
    category: str = "engagement",
):
    """Render a styled metric card; `change` is a whole-percent change vs the previous period."""
    if change is not None:
        if change > 0:
            trend_html = f'<div class="li-up">▲ {abs(change)}% vs prev</div>'
        elif change < 0:
            trend_html = f'<div class="li-down">▼ {abs(change)}% vs prev</div>'
        else:
            trend_html = '<div class="li-flat">→ unchanged</div>'
    else:
        trend_html = ""

    value_str = f"{value:,}" if isinstance(value, int) else str(value)

    st.markdown(f"""
    <div class="li-card {category}">
        <div class="li-label">{label}</div>
        <div>
            <span class="li-value">{value_str}</span>
            <span class="li-unit">{unit}</span>
        </div>
        {trend_html}
        <div class="li-desc">{description}</div>
    </div>
    """, unsafe_allow_html=True)


def section_header(title: str, count: int = 0, color: str = "#4F8EF7"):
    """Render a section header."""
    count_badge = f'<span class="li-section-count">{count}</span>' if count else ""
    st.markdown(f"""
    <div class="li-section">
        <span class="li-section-title" style="color: {color};">{title}</span>
        {count_badge}
    </div>
    """, unsafe_allow_html=True)


def insight_card(insight: Dict):
    bg, border, fg = INSIGHT_COLORS.get(insight["type"], INSIGHT_COLORS["info"])
    st.markdown(
        f'<div style="background:{bg};border:1px solid {border};border-radius:10px;'
        f'padding:12px 16px;margin-bottom:10px;">'
        f'<div style="font-size:13px;font-weight:700;color:{fg};">{insight["title"]}'
        f'<span style="float:right;font-size:10px;text-transform:uppercase;color:#6B7494;">'
        f'{insight["category"]} · {insight["priority"]}</span></div>'
        f'<div style="font-size:12px;color:#C0C8E8;margin-top:4px;">{insight["message"]}</div>'
        f'</div>',
        unsafe_allow_html=True,
    )


def anomaly_banner(report: Dict):
    """Warning strip listing detected anomalies; nothing is rendered when there are none."""
    if not report.get("has_anomalies"):
        return
    color = RISK_COLORS.get(report["risk_level"], RISK_COLORS["low"])
    items = "".join(
        f'<li><b>{a["type"]}</b> ({a["severity"]}): {a["message"]}</li>' for a in report["anomalies"]
    )
    st.markdown(
        f'<div style="border-left:4px solid {color};background:#12172A;border-radius:6px;'
        f'padding:10px 16px;margin-bottom:16px;font-size:12px;color:#C0C8E8;">'
        f'<div style="font-weight:700;color:{color};margin-bottom:4px;">'
        f'Data anomalies · risk {report["risk_level"]}</div><ul style="margin:0;">{items}</ul></div>',
        unsafe_allow_html=True,
    )


def data_quality_badge(quality: Dict):
    score = quality["score"]
    color = "#22C55E" if score >= 80 else ("#FBBF24" if score >= 50 else "#EF4444")
    st.markdown(
        f'<span style="font-size:12px;color:{color};font-weight:600;">Data quality {score}/100</span>'
        f'<span style="font-size:11px;color:#6B7494;margin-left:8px;">'
        f'completeness {quality["completeness"]}% · freshness {quality["freshness"]}%</span>',
        unsafe_allow_html=True,
    )
    for issue in quality.get("issues", []):
        st.caption(f"⚠ {issue}")


def connection_status_badge(connected: bool, endpoint: str = ""):
    if connected:
        st.markdown(
            f'<div style="display:inline-flex;align-items:center;gap:6px;background:#052E16;border:1px solid #166534;'
            f'border-radius:20px;padding:4px 12px;font-size:12px;color:#4ADE80;">'
            f'<span style="width:6px;height:6px;background:#4ADE80;border-radius:50%;"></span>'
            f'Connected · {endpoint[:40] or "LRS"}</div>',
            unsafe_allow_html=True
        )
    else:
        st.markdown(
            '<div style="display:inline-flex;align-items:center;gap:6px;background:#2D0A0A;border:1px solid #7F1D1D;'
            'border-radius:20px;padding:4px 12px;font-size:12px;color:#FCA5A5;">'
            '<span style="width:6px;height:6px;background:#EF4444;border-radius:50%;"></span>'
            'Disconnected</div>',
            unsafe_allow_html=True
        )


# ─────────────────────────────────────────────
# CHARTS & TABLES
# ─────────────────────────────────────────────

def show_figure(fig: go.Figure, empty: bool = False, empty_text: str = "No data"):
    if empty:
        st.caption(empty_text)
        return
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})


def scores_table(records: List[Dict]):
    if not records:
        st.caption("No scored activities")
        return
    df = pd.DataFrame(records)[["activity", "score", "best_score", "attempts", "success", "timestamp"]]
    df.columns = ["Activity", "Score (%)", "Best (%)", "Attempts", "Passed", "Last Attempt"]
    st.dataframe(df, use_container_width=True, hide_index=True)


def sessions_table(sessions: List[Dict], limit: int = 20):
    if not sessions:
        st.caption("No study sessions")
        return
    df = pd.DataFrame(sessions[-limit:][::-1])
    df["duration"] = (df["duration_seconds"] / 60).round(1)
    df = df[["start", "end", "activity_count", "duration"]]
    df.columns = ["Start", "End", "Activities", "Duration (min)"]
    st.dataframe(df, use_container_width=True, hide_index=True)


def period_comparison_row(comparison: Dict):
    labels = {
        "total_activities": "Activities",
        "completions": "Completions",
        "average_score": "Avg Score",
        "unique_days": "Active Days",
    }
    cols = st.columns(len(labels))
    for col, (key, label) in zip(cols, labels.items()):
        with col:
            st.metric(
                label=f"{label} ({comparison['period']})",
                value=comparison["current"][key],
                delta=f"{comparison['changes'][key]}%",
            )
