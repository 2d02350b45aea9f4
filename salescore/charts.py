from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence, Tuple

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def bar_chart(items: Sequence[Tuple[str, float]], *, label: str, value_title: str, fmt: str = ",.0f") -> Dict[str, Any]:
    df = pd.DataFrame(list(items), columns=["label", "value"])
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("value:Q", title=value_title, axis=alt.Axis(format="~s")),
            y=alt.Y("label:N", title=label, sort="-x"),
            tooltip=[alt.Tooltip("label:N", title=label), alt.Tooltip("value:Q", title=value_title, format=fmt)],
        )
    )
    return to_vega_spec(chart)


def trend_chart(points: Mapping[str, float], *, value_title: str) -> Dict[str, Any]:
    df = pd.DataFrame({"period": list(points.keys()), "value": list(points.values())})
    chart = (
        alt.Chart(df)
        .mark_line(point={"filled": True})
        .encode(
            x=alt.X("period:O", title="Date Range", sort=None),
            y=alt.Y("value:Q", title=value_title, axis=alt.Axis(format="~s", gridDash=[4, 4])),
            tooltip=[alt.Tooltip("period:N", title="Date Range"), alt.Tooltip("value:Q", title=value_title, format=",.0f")],
        )
    )
    return to_vega_spec(chart)


def share_chart(shares: Mapping[str, float], *, title: str) -> Dict[str, Any]:
    rows: List[Dict[str, Any]] = [{"platform": k, "value": v} for k, v in shares.items() if v > 0]
    df = pd.DataFrame(rows, columns=["platform", "value"])
    chart = (
        alt.Chart(df)
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("platform:N", title="Platform"),
            tooltip=[alt.Tooltip("platform:N"), alt.Tooltip("value:Q", title=title, format=",.0f")],
        )
    )
    return to_vega_spec(chart)
