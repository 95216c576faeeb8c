"""Tests for the Streamlit widget helpers."""

from frontend import components
from frontend.components import CATEGORY_COLORS


def test_card_accent_for_every_category():
    rules = components._category_rules()
    for name, color in CATEGORY_COLORS.items():
        assert f".li-card.{name} {{ border-left-color: {color}; }}" in rules


def test_inject_css_renders_one_style_block(monkeypatch):
    calls = []
    monkeypatch.setattr(components.st, "markdown", lambda body, **kw: calls.append((body, kw)))
    components.inject_css()
    body, kwargs = calls[0]
    assert body.count("<style>") == 1
    assert ".li-card.quality" in body
    assert kwargs == {"unsafe_allow_html": True}


def test_metric_card_uses_category_class(monkeypatch):
    calls = []
    monkeypatch.setattr(components.st, "markdown", lambda body, **kw: calls.append(body))
    components.metric_card("Progress", 1200, "%", change=-5, category="progress")
    assert 'class="li-card progress"' in calls[0]
    assert "1,200" in calls[0]
    assert "▼ 5% vs prev" in calls[0]
