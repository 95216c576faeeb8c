"""
Anomaly detection over an aggregated dashboard summary.
"""

import logging
from collections import Counter
from typing import Dict, List

import numpy as np

logger = logging.getLogger(__name__)

MIN_PERFECT_SCORES = 5
MAX_SCORE_SPREAD = 50
SPIKE_FACTOR = 5


def calculate_risk_level(anomalies: List[Dict]) -> str:
    if not anomalies:
        return "none"
    counts = Counter(a.get("severity") for a in anomalies)
    if counts["high"] > 0 or counts["medium"] > 1:
        return "high"
    if counts["medium"] == 1:
        return "medium"
    return "low"


def detect_anomalies(summary: Dict) -> Dict:
    """
    Scan the summary for suspicious patterns: all-perfect scores, very
    large score spreads and single days with far more activity than usual.
    """
    anomalies: List[Dict] = []

    records = (summary.get("scores") or {}).get("scores") or []
    scores = [r["score"] for r in records]

    if len(scores) >= MIN_PERFECT_SCORES and all(s == 100 for s in scores):
        anomalies.append({
            "type": "suspicious_scores",
            "message": "All scores are perfect (100%) - this may indicate data issues",
            "severity": "medium",
        })

    if len(scores) > 1:
        spread = max(scores) - min(scores)
        if spread > MAX_SCORE_SPREAD:
            anomalies.append({
                "type": "large_improvement",
                "message": f"Score improved by {spread}% - verify data accuracy",
                "severity": "low",
            })

    timeline = summary.get("timeline") or []
    if timeline:
        counts = np.array([day["total_activities"] for day in timeline], dtype=float)
        peak = int(counts.max())
        if peak > counts.mean() * SPIKE_FACTOR:
            anomalies.append({
                "type": "activity_spike",
                "message": f"Unusually high activity day ({peak} activities)",
                "severity": "low",
            })

    risk = calculate_risk_level(anomalies)
    if anomalies:
        logger.warning(f"Detected {len(anomalies)} anomalies (risk: {risk})")

    return {
        "has_anomalies": bool(anomalies),
        "anomalies": anomalies,
        "risk_level": risk,
    }
