"""
Interactive page: anchors and rates in the sidebar, curves and the three
expected-fatality figures in the main area.

    streamlit run app.py            interactive
    python -m biorisk.dashboard     headless, prints the metrics
"""

from __future__ import annotations

import logging

import numpy as np

from . import ui
from .curves import ANCHOR_MONTHS, MIN_MONTHS, compute_success_curve
from .model import DAYS_PER_MONTH, HORIZON_DAYS, MAX_BANS, MAX_TIME_LOST, BanTimeCost, ModelSession
from .parameters import ModelParameters, load_parameters
from .spline import POLICY_LABELS

_EFFORT_VARIANTS: dict[int, str] = {
    3: "3 anchors (certain by 36 months)",
    4: "4 anchors (free value at 60 months)",
}
_CONTROL_CHARTS = (
    # field,               title,                        x title,            y title
    ("queries_vs_time",   "Queries executed vs time",   "days",             "queries executed"),
    ("bans_vs_queries",   "Bans vs queries executed",   "queries executed", "bans"),
    ("time_lost_to_bans", "Time lost to bans",          "bans",             "days lost"),
)
_SAMPLES = 200


# ── sidebar ────────────────────────────────────────────────────────────────────

def _anchor_inputs(prefix: str, label: str, values: list, months, key: str) -> list:
    return [
        ui.sidebar_number_input(
            f"{label} at {m:g} months (%)",
            min_value=0.0, max_value=100.0, value=float(v), step=0.1, key=f"{key}_{i}",
            help=f"{prefix} anchor {i + 1}",
        )
        for i, (v, m) in enumerate(zip(values, months))
    ]


def _read_sidebar(params: ModelParameters) -> None:
    ui.sidebar_header("Effort")
    n_anchors = ui.sidebar_radio(
        "Effort CDF shape",
        options=list(_EFFORT_VARIANTS),
        format_func=_EFFORT_VARIANTS.__getitem__,
        help="Three anchors force the CDF to 100% at 36 months; four add a free anchor at 60 months.",
    )
    params.effort_policy = ui.sidebar_radio(
        "Effort CDF interpolation",
        options=["cdf", "cdf_min"],
        format_func=POLICY_LABELS.__getitem__,
    )
    effort = list(params.effort_anchors[:3])
    if n_anchors == 4:
        effort.append(params.effort_anchors[3] if len(params.effort_anchors) > 3 else 100.0)
    params.effort_anchors = _anchor_inputs(
        "effort", "Attempts ended", effort, ANCHOR_MONTHS, f"effort{n_anchors}",
    )

    ui.sidebar_header("Success given effort")
    params.baseline_success_anchors = _anchor_inputs(
        "baseline", "Baseline success", params.baseline_success_anchors, ANCHOR_MONTHS, "baseline",
    )
    params.pre_mitigation_success_anchors = _anchor_inputs(
        "pre-mitigation", "Pre-mitigation success", params.pre_mitigation_success_anchors,
        ANCHOR_MONTHS, "pre",
    )

    ui.sidebar_header("Rates")
    params.annual_attempts = ui.sidebar_number_input(
        "Attempts per year", min_value=0.0, value=float(params.annual_attempts), step=1.0,
    )
    params.expected_damage_per_success = ui.sidebar_number_input(
        "Expected fatalities per success (millions)", min_value=0.0,
        value=float(params.expected_damage_per_success), step=0.1,
    )
    params.queries_per_month = ui.sidebar_number_input(
        "Queries per month", min_value=0.0, value=float(params.queries_per_month), step=1.0,
        help="Months of effort are converted to queries at this rate.",
    )


def _edit_points(points, name: str, x_max: float, y_max: float) -> None:
    """One slider pair per movable point; moves go through ControlPointSet.drag."""
    for i in range(len(points)):
        p = points[i]
        if p.fixed:
            continue
        col_x, col_y = ui.columns(2)
        with col_x:
            x = ui.slider(f"point {i} x", min_value=0.0, max_value=float(x_max), value=float(p.x),
                          key=f"{name}_{i}_x")
        with col_y:
            y = ui.slider(f"point {i} y", min_value=0.0, max_value=float(y_max), value=float(p.y),
                          key=f"{name}_{i}_y")
        points.drag(i, x, y, x_bounds=(0.0, float(x_max)), y_bounds=(0.0, float(y_max)))


# ── figures ────────────────────────────────────────────────────────────────────

def _control_figure(go, resampler, title: str, x_title: str, y_title: str):
    points = resampler.points
    fig = go.Figure()
    if len(points) >= 2:
        xs = np.linspace(points[0].x, points[-1].x, _SAMPLES)
        fig.add_trace(go.Scatter(x=xs, y=resampler.value_at(xs), mode="lines",
                                 line=dict(color="#1f78b4"), name="curve"))
        tangent = resampler.tangent()
        fig.add_trace(go.Scatter(x=[p.x for p in tangent], y=[p.y for p in tangent], mode="lines",
                                 line=dict(color="#1f78b4", dash="dash"), name="extension"))
    fig.add_trace(go.Scatter(
        x=[p.x for p in points], y=[p.y for p in points], mode="markers",
        marker=dict(size=10, color=["grey" if p.fixed else "#e31a1c" for p in points]),
        name="control points",
    ))
    fig.update_layout(title=title, xaxis_title=x_title, yaxis_title=y_title, margin=dict(t=40))
    return fig


def _display_success(params: ModelParameters, result: dict, valid: bool) -> list:
    """Curves for the success chart; damped extrapolation past 36 months when inputs are valid."""
    horizon = float(params.max_time_months)
    if valid:
        baseline = compute_success_curve(params.baseline_success_anchors, max_time_months=horizon,
                                         beyond_last_anchor="extrapolate")
        pre = compute_success_curve(params.pre_mitigation_success_anchors, max_time_months=horizon,
                                    beyond_last_anchor="extrapolate")
    else:
        baseline, pre = result["baseline_success"], result["pre_mitigation_success"]
    post = result["post_mitigation_success"]
    return [
        (baseline, "baseline", "#33a02c"),
        (pre, "pre-mitigation", "#e31a1c"),
        (post.window(MIN_MONTHS, horizon), "post-mitigation", "#1f78b4"),
    ]


def _success_figure(go, series: list):
    fig = go.Figure()
    for curve, name, color in series:
        fig.add_trace(go.Scatter(x=curve.x, y=100 * curve.y, mode="lines",
                                 line=dict(color=color), name=name))
    fig.update_xaxes(type="log")
    fig.update_layout(title="Success probability given effort", xaxis_title="months of effort",
                      yaxis_title="success (%)", margin=dict(t=40))
    return fig


def render() -> None:
    import plotly.graph_objects as go

    ui.title("Novice bioweapon risk")
    ui.caption("Expected annual fatalities with and without query-level mitigations.")

    params = ui.session_value("parameters", load_parameters)
    session = ui.session_value("model_session", ModelSession)
    _read_sidebar(params)

    # queries chart spans the query count reachable in HORIZON_DAYS at the current rate
    max_queries = HORIZON_DAYS * max(float(params.queries_per_month), 1.0) / DAYS_PER_MONTH
    bounds = {
        "queries_vs_time": (HORIZON_DAYS, max_queries),
        "bans_vs_queries": (max_queries, MAX_BANS),
        "time_lost_to_bans": (MAX_BANS, MAX_TIME_LOST),
    }
    for name, title, _, _ in _CONTROL_CHARTS:
        with ui.expander(f"Edit: {title}"):
            _edit_points(getattr(params, name), name, *bounds[name])

    result, err = session.update(params)
    if err:
        ui.error(err)
    if result is None:
        return

    col_base, col_pre, col_post = ui.columns(3)
    pre_value = result["pre_mitigation_fatalities"]
    post_value = result["post_mitigation_fatalities"]
    delta = f"{100 * (post_value - pre_value) / pre_value:+.1f}%" if pre_value > 0 else None
    with col_base:
        ui.metric("Baseline fatalities / yr", f"{result['baseline_fatalities']:,.0f}")
    with col_pre:
        ui.metric("Pre-mitigation fatalities / yr", f"{pre_value:,.0f}")
    with col_post:
        ui.metric("Post-mitigation fatalities / yr", f"{post_value:,.0f}", delta=delta)

    tab_effort, tab_success, tab_queries = ui.tabs(["Effort", "Success", "Queries & bans"])

    with tab_effort:
        cdf = result["effort_cdf"]
        fig_cdf = go.Figure(go.Scatter(x=cdf.x, y=100 * cdf.y, mode="lines", line=dict(color="#6a3d9a")))
        fig_cdf.update_xaxes(type="log")
        fig_cdf.update_layout(title="Cumulative share of attempts by months of effort",
                              xaxis_title="months", yaxis_title="cumulative (%)", margin=dict(t=40))
        ui.plotly_chart(fig_cdf)

    with tab_success:
        ui.plotly_chart(_success_figure(go, _display_success(params, result, valid=err is None)))

    with tab_queries:
        cost = BanTimeCost(
            params.queries_vs_time, params.bans_vs_queries, params.time_lost_to_bans,
            queries_per_month=float(params.queries_per_month),
        )
        resamplers = {"queries_vs_time": cost.queries, "bans_vs_queries": cost.bans,
                      "time_lost_to_bans": cost.time_lost}
        for name, title, x_title, y_title in _CONTROL_CHARTS:
            ui.plotly_chart(_control_figure(go, resamplers[name], title, x_title, y_title))

        with_bans = cost.time_with_bans_curve()
        fig_bans = go.Figure(go.Scatter(x=with_bans.x, y=with_bans.y, mode="lines",
                                        line=dict(color="#ff7f00"), name="with bans"))
        fig_bans.update_layout(title="Queries executed vs time, bans included", xaxis_title="days",
                               yaxis_title="queries executed", margin=dict(t=40))
        ui.plotly_chart(fig_bans)
        ui.subheader(f"{len(with_bans)} whole queries fit in {HORIZON_DAYS:g} days once bans are counted")


# ── CLI entry point (single computation flow via render) ───────────────────────

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ui.IS_MAIN = True
    render()
