"""
Hosted entrypoint for the Badge Press UI.

Hosted Streamlit runs `streamlit_app.py` by default; the UI itself lives in
`ui.py`. Job logs (capture tiers, skipped badges) go to stdout so they show up
in the host's log viewer.
"""

import logging
import runpy
import sys
from pathlib import Path

import streamlit as st

APP_DIR = Path(__file__).resolve().parent
UI_PATH = APP_DIR / "ui.py"

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
logger = logging.getLogger("badge_press")

if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

try:
    # run by path; an installed "ui" package must not shadow the local script
    runpy.run_path(str(UI_PATH), run_name="badge_press_ui")
except Exception as e:
    logger.exception("UI failed to start from %s", UI_PATH)
    st.error("Badge Press failed to start. See details below.")
    st.exception(e)
