from __future__ import annotations

import logging

import streamlit as st
import numpy as np
import plotly.graph_objects as go

from keyutils import (
    DEFAULT_BITSTR, PARAM_RANGES, RANDOM_BITS_LEN, SCHEME_LABELS,
    ModParams, ValidationError, bits_to_string, fft_mag, gen_random_bits, validate_bitstr,
)
from keying import synthesize
from render import PANELS, make_surfaces, render_panels

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("modsim.app")

st.set_page_config(layout="wide")

st.markdown(
    """
    <style>
    [data-testid="InputInstructions"] {
        display: none !important;
    }
    </style>
    """,
    unsafe_allow_html=True,
)

SCHEME_TITLES = {
    "ASK": "ASK Modulation",
    "FSK": "FSK Modulation",
    "PSK": "PSK Modulation",
    "BASK": "BASK Modulation",
    "BFSK": "BFSK Modulation",
    "BPSK": "BPSK Modulation",
}

SCHEME_NAMES = {
    "ASK": "Amplitude Shift Keying (ASK)",
    "FSK": "Frequency Shift Keying (FSK)",
    "PSK": "Phase Shift Keying (PSK)",
    "BASK": "Binary ASK (BASK)",
    "BFSK": "Binary FSK (BFSK)",
    "BPSK": "Binary PSK (BPSK)",
}

PANEL_W, PANEL_H, PANEL_DPR = 520, 160, 2.0


def plot_overlay(t, digital, modulated, title):
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=t, y=digital, mode="lines", line_shape="hv", name="Digital Signal",
        line=dict(color="#76ff03", width=4), yaxis="y2",
    ))
    fig.add_trace(go.Scatter(
        x=t, y=modulated, mode="lines", name="Modulated Signal",
        line=dict(color="#4fc3f7", width=3), fill="tozeroy", fillcolor="rgba(79, 195, 247, 0.15)",
    ))
    fig.update_layout(
        title=title,
        xaxis_title="Time (ms)",
        yaxis=dict(title="Amplitude (V)", range=[-2.5, 2.5]),
        yaxis2=dict(overlaying="y", side="right", range=[-0.2, 1.2], showgrid=False),
        showlegend=False,
    )
    return fig


def plot_freq(x, fs, title):
    f, mag = fft_mag(np.asarray(x, dtype=float), fs)
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=f, y=mag, mode="lines", name="|X(f)|"))
    fig.update_layout(title=title, xaxis_title="Frequency (kHz)", yaxis_title="Magnitude")
    return fig


def empty_state(message: str = "Click **Run simulation** from the sidebar to see results."):
    st.markdown(
        """
        <div style="text-align:center; padding: 6rem 1rem; opacity: 0.95;">
            <div style="font-size: 4rem; line-height: 1;">📡</div>
            <div style="font-size: 1.35rem; font-weight: 600; margin-top: 0.75rem;">
                Ready when you are
            </div>
            <div style="font-size: 1.05rem; margin-top: 0.5rem;">
        """
        + message +
        """
            </div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def make_signature(params: ModParams):
    return (
        float(params.frequency), float(params.amplitude), float(params.bit_rate),
        float(params.freq_dev), params.scheme, params.bitstr,
    )


st.title("Digital Modulation Visualizer — ASK / FSK / PSK")

if "bitstr_draft" not in st.session_state:
    st.session_state["bitstr_draft"] = DEFAULT_BITSTR

with st.sidebar:
    st.header("Modulation parameters")

    def _slider(label, key):
        lo, hi, default, step = PARAM_RANGES[key]
        return st.slider(label, float(lo), float(hi), float(default), step=float(step), key=f"p_{key}")

    frequency = _slider("Carrier frequency (kHz)", "frequency")
    amplitude = _slider("Signal amplitude (V)", "amplitude")
    bit_rate = _slider("Bit rate (kbps)", "bit_rate")
    freq_dev = _slider("Frequency deviation, FSK/BFSK (kHz)", "freq_dev")

    st.divider()
    st.subheader("Configuration")

    scheme = st.selectbox(
        "Modulation type",
        list(SCHEME_LABELS.keys()),
        format_func=lambda k: SCHEME_NAMES.get(k, k),
    )

    st.text_input("Binary data", key="bitstr_draft")

    draft = st.session_state.get("bitstr_draft", "").strip()
    draft_invalid = False
    try:
        validate_bitstr(draft)
    except ValidationError as e:
        draft_invalid = True
        st.error(str(e))

    st.text_input("Seed (optional)", value="", key="rand_seed")
    seed_txt = st.session_state.get("rand_seed", "").strip()
    seed_invalid = seed_txt != "" and (seed_txt == "-" or not seed_txt.lstrip("-").isdigit())
    if seed_invalid:
        st.error("Seed must be an integer.")

    def _gen_bits_cb():
        seed_txt = st.session_state.get("rand_seed", "").strip()
        if seed_txt != "":
            if seed_txt == "-" or not seed_txt.lstrip("-").isdigit():
                return  # invalid seed -> do nothing (sidebar error already shown)
            s = int(seed_txt)
        else:
            s = None
        st.session_state["bitstr_draft"] = bits_to_string(gen_random_bits(RANDOM_BITS_LEN, seed=s))

    st.button("Generate random bits", on_click=_gen_bits_cb)

    params = ModParams(
        frequency=frequency,
        amplitude=amplitude,
        bit_rate=bit_rate,
        freq_dev=freq_dev,
        scheme=scheme,
        bitstr=draft,
    )
    current_sig = make_signature(params)

    run = st.button("Run simulation", type="primary", disabled=draft_invalid)

if "sim_last" not in st.session_state:
    st.session_state["sim_last"] = None
if "sim_sig" not in st.session_state:
    st.session_state["sim_sig"] = None

if run:
    try:
        st.session_state["sim_last"] = synthesize(params)
        st.session_state["sim_sig"] = current_sig
    except ValidationError as e:
        logger.info("run rejected: %s", e)
        st.session_state["sim_last"] = None
        st.error(str(e))

res = st.session_state.get("sim_last", None)
if res is not None and st.session_state.get("sim_sig") != current_sig:
    res = None
    st.session_state["sim_last"] = None

if res is None:
    empty_state("Pick a modulation, then click **Run simulation** to generate the waveforms.")
else:
    for w in res.meta.get("warnings", []):
        st.warning(w)

    tab1, tab2, tab3, tab4 = st.tabs(["Waveforms", "Comparison", "Frequency", "Details"])

    with tab1:
        st.plotly_chart(
            plot_overlay(res.t, res.signals["digital"], res.signals["modulated"], SCHEME_TITLES.get(scheme, "Modulation")),
            width="stretch",
        )

    with tab2:
        surfaces = make_surfaces(PANEL_W, PANEL_H, PANEL_DPR)
        drawn = render_panels(surfaces, res)
        cols = st.columns(2)
        for idx, name in enumerate(drawn):
            with cols[idx % 2]:
                st.image(surfaces[name].to_png(), caption=PANELS[name].label, width=PANEL_W)

    with tab3:
        st.plotly_chart(plot_freq(res.signals["modulated"], res.meta["fs"], "Spectrum of modulated signal"), width="stretch")

    with tab4:
        st.code("Input:   " + bits_to_string(res.bits["input"]))
        st.json({k: v for k, v in res.meta.items() if k != "modulate"})
        st.json(res.meta.get("modulate", {}))
