"""
Plotly figure builders for the chart projections in backend/charts.py.
Kept free of Streamlit so the figures can be built and inspected anywhere.
"""

from datetime import date
from typing import Dict, List

import plotly.graph_objects as go

# ─────────────────────────────────────────────
# COLOR PALETTE
# ─────────────────────────────────────────────

PURPLE = "#A855F7"
PINK = "#EC4899"
BLUE = "#3B82F6"
GREEN = "#22C55E"
SLATE = "#475569"

GRADE_COLORS = {
    "A": "#22C55E",
    "B": "#3B82F6",
    "C": "#FBBF24",
    "D": "#F97316",
    "F": "#EF4444",
}

HEATMAP_SCALE = [
    [0.0, "#12172A"],
    [0.25, "#1E3A5F"],
    [0.5, "#2563EB"],
    [0.75, "#60A5FA"],
    [1.0, "#BFDBFE"],
]

PLOTLY_LAYOUT = dict(
    paper_bgcolor="rgba(0,0,0,0)",
    plot_bgcolor="rgba(0,0,0,0)",
    font=dict(family="Inter, sans-serif", color="#8B92B0", size=11),
    margin=dict(l=10, r=10, t=30, b=30),
    xaxis=dict(
        showgrid=True,
        gridcolor="#1E2235",
        showline=False,
        tickfont=dict(color="#6B7494", size=10),
        zeroline=False,
    ),
    yaxis=dict(
        showgrid=True,
        gridcolor="#1E2235",
        showline=False,
        tickfont=dict(color="#6B7494", size=10),
        zeroline=False,
    ),
    legend=dict(bgcolor="rgba(0,0,0,0)", font=dict(color="#8B92B0")),
)


def _rgba(color: str, alpha: float) -> str:
    return f"rgba({int(color[1:3], 16)},{int(color[3:5], 16)},{int(color[5:7], 16)},{alpha})"


def _layout(title: str, height: int, axes: bool = True, **extra) -> Dict:
    layout = {**PLOTLY_LAYOUT, "height": height,
              "title": dict(text=title, font=dict(size=12, color="#C0C8E8")), **extra}
    if not axes:
        del layout["xaxis"], layout["yaxis"]
    return layout


# ─────────────────────────────────────────────
# FIGURES
# ─────────────────────────────────────────────

def progress_donut(chart: Dict, title: str = "Course Progress", height: int = 260) -> go.Figure:
    fig = go.Figure(go.Pie(
        labels=chart["labels"],
        values=chart["values"],
        hole=0.7,
        sort=False,
        marker=dict(colors=[_rgba(PURPLE, 0.8), _rgba(SLATE, 0.3)], line=dict(color="#0A0C14", width=2)),
        textinfo="none",
    ))
    fig.update_layout(**_layout(title, height, axes=False, showlegend=False))
    fig.add_annotation(
        text=f"{chart['percentage']}%<br><span style='font-size:11px'>Complete</span>",
        showarrow=False,
        font=dict(size=26, color="#E8EAF6", family="JetBrains Mono"),
    )
    return fig


def score_line(chart: Dict, title: str = "Quiz Scores", height: int = 260) -> go.Figure:
    fig = go.Figure(go.Scatter(
        x=chart["labels"],
        y=chart["values"],
        text=chart["activities"],
        hovertemplate="%{text}<br>%{y}%<extra></extra>",
        mode="lines+markers",
        line=dict(color=PINK, width=3, shape="spline"),
        marker=dict(size=8, color=PINK, line=dict(color="white", width=2)),
        fill="tozeroy",
        fillcolor=_rgba(PINK, 0.1),
    ))
    layout = _layout(title, height)
    layout["yaxis"] = {**layout["yaxis"], "range": [0, 100], "ticksuffix": "%"}
    fig.update_layout(**layout)
    return fig


def timeline_bars(chart: Dict, title: str = "Daily Activity", height: int = 260) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Bar(x=chart["labels"], y=chart["total_activities"], name="Total Activities",
                         marker_color=_rgba(BLUE, 0.6), marker_line_color=BLUE, marker_line_width=2))
    fig.add_trace(go.Bar(x=chart["labels"], y=chart["completions"], name="Completions",
                         marker_color=_rgba(GREEN, 0.6), marker_line_color=GREEN, marker_line_width=2))
    fig.update_layout(**_layout(title, height, barmode="group"))
    return fig


def distribution_bars(chart: Dict, title: str = "Score Distribution", height: int = 260) -> go.Figure:
    colors = [GRADE_COLORS.get(label, BLUE) for label in chart["labels"]]
    fig = go.Figure(go.Bar(x=chart["labels"], y=chart["values"], marker_color=colors, marker_line_width=0))
    fig.update_layout(**_layout(title, height))
    return fig


def engagement_radar(chart: Dict, title: str = "Engagement", height: int = 300) -> go.Figure:
    labels: List[str] = list(chart["labels"])
    values: List[int] = list(chart["values"])
    fig = go.Figure(go.Scatterpolar(
        r=values + values[:1],
        theta=labels + labels[:1],
        fill="toself",
        fillcolor=_rgba(PURPLE, 0.2),
        line=dict(color=PURPLE, width=2),
        name="Engagement Level",
    ))
    layout = _layout(title, height, axes=False, showlegend=False)
    layout["polar"] = dict(
        bgcolor="rgba(0,0,0,0)",
        radialaxis=dict(range=[0, 100], gridcolor="#1E2235", tickfont=dict(color="#6B7494", size=9)),
        angularaxis=dict(gridcolor="#1E2235", tickfont=dict(color="#8B92B0", size=10)),
    )
    fig.update_layout(**layout)
    return fig


def activity_heatmap(points: List[Dict], title: str = "Activity (last 12 months)", height: int = 200) -> go.Figure:
    """GitHub-style grid: one column per week, one row per weekday."""
    offset = date.fromisoformat(points[0]["date"]).weekday() if points else 0
    z: Dict[int, Dict[int, int]] = {}
    text: Dict[int, Dict[int, str]] = {}
    weeks: List[int] = []
    for i, point in enumerate(points):
        d = date.fromisoformat(point["date"])
        week = (i + offset) // 7
        if week not in z:
            weeks.append(week)
            z[week], text[week] = {}, {}
        z[week][d.weekday()] = point["level"]
        text[week][d.weekday()] = f"{point['date']}: {point['count']} activities"

    rows = [[z[w].get(day) for w in weeks] for day in range(7)]
    hover = [[text[w].get(day, "") for w in weeks] for day in range(7)]
    fig = go.Figure(go.Heatmap(
        z=rows,
        text=hover,
        hoverinfo="text",
        colorscale=HEATMAP_SCALE,
        zmin=0,
        zmax=4,
        showscale=False,
        xgap=2,
        ygap=2,
    ))
    layout = _layout(title, height)
    layout["yaxis"] = {**layout["yaxis"], "tickvals": list(range(7)),
                       "ticktext": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
                       "autorange": "reversed", "showgrid": False}
    layout["xaxis"] = {**layout["xaxis"], "showticklabels": False, "showgrid": False}
    fig.update_layout(**layout)
    return fig


def weekday_bars(profile: Dict[str, int], title: str = "Activity by Weekday", height: int = 220) -> go.Figure:
    values = list(profile.values())
    fig = go.Figure(go.Bar(
        x=list(profile.keys()),
        y=values,
        marker=dict(color=values, colorscale=HEATMAP_SCALE, line=dict(width=0)),
    ))
    fig.update_layout(**_layout(title, height))
    return fig
