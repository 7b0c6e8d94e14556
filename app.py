# /// script
# requires-python = ">=3.10"
# dependencies = ["numpy", "scipy", "plotly", "streamlit"]
# ///
"""streamlit run app.py"""

import streamlit as st

from biorisk.dashboard import render

st.set_page_config(page_title="Novice bioweapon risk", layout="wide")
render()
