import contextlib

try:
    import streamlit as st
except ImportError:
    st = None  # only needed when IS_MAIN is False (Streamlit mode)

IS_MAIN = False
# ── UI: standalone (stdout/defaults) vs Streamlit ───────────────────────────────

_LOCAL_STATE: dict = {}


class _Ctx:
    def __enter__(self): return self
    def __exit__(self, *a): return False


def session_value(key, factory):
    """Per-session object, created on first use (module dict when standalone)."""
    state = _LOCAL_STATE if IS_MAIN else st.session_state
    if key not in state:
        state[key] = factory()
    return state[key]

def title(text):
    if IS_MAIN: print(f"== {text} =="); return
    st.title(text)

def caption(text):
    if IS_MAIN: return
    st.caption(text)

def subheader(text):
    if IS_MAIN: print(text); return
    st.subheader(text)

def sidebar_header(text):
    if IS_MAIN: return
    st.sidebar.header(text)

def sidebar_radio(label, options, format_func=str, help=""):
    if IS_MAIN: return options[0]
    return st.sidebar.radio(label, options=options, format_func=format_func, help=help)

def sidebar_number_input(label, *, min_value=None, max_value=None, value, step=None, key=None, help=""):
    if IS_MAIN: return value
    return st.sidebar.number_input(label, min_value=min_value, max_value=max_value, value=value,
                                   step=step, key=key, help=help)

def slider(label, *, min_value, max_value, value, step=None, key=None, help=""):
    if IS_MAIN: return value
    return st.slider(label, min_value=min_value, max_value=max_value, value=value, step=step, key=key, help=help)

def error(msg):
    if IS_MAIN: print(f"[error] {msg}"); return
    st.error(msg)

def columns(n):
    if IS_MAIN: return tuple(_Ctx() for _ in range(n))
    return st.columns(n)

def tabs(labels):
    if IS_MAIN: return tuple(_Ctx() for _ in range(len(labels)))
    return st.tabs(labels)

def plotly_chart(fig, width="stretch"):
    if IS_MAIN: return
    st.plotly_chart(fig, width=width)

def expander(title, *, expanded=False):
    if IS_MAIN: return contextlib.nullcontext()
    return st.expander(title, expanded=expanded)

def metric(label, value, delta=None):
    if IS_MAIN: print(f"{label}: {value}"); return
    st.metric(label, value, delta=delta)
