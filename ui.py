#!/usr/bin/env python3
"""
Streamlit UI for Badge Press
"""

import asyncio
import json
import logging
import time
import traceback

import streamlit as st

from config import MAX_LISTED_FAILURES
from errors import EmptyDocumentError, FinalizeFailure
from layout import PAGE_SIZES, resolve_layout
from models import PagingMode, Template

logger = logging.getLogger("badge_press.ui")

# Startup timing for hosted logs
_UI_T0 = time.perf_counter()
def _ui_log(msg: str) -> None:
    logger.info("+%.3fs %s", time.perf_counter() - _UI_T0, msg)

_ui_log("ui start")

st.set_page_config(
    page_title="Badge Press",
    page_icon="🪪",
    layout="centered",
)

st.markdown(
    """
<div style="margin-top: 0.25rem; margin-bottom: 0.25rem;">
  <div style="font-size: 1.8rem; font-weight: 750; line-height: 1.15;">
    Badge Press
  </div>
  <div style="font-size: 1.05rem; opacity: 0.8; margin-top: 0.2rem;">
    Turn a sheet of rendered badges into a print-ready PDF
  </div>
</div>
""",
    unsafe_allow_html=True,
)
_ui_log("rendered header")

if "result" not in st.session_state:
    st.session_state.result = None

# --- Sheet ---
st.subheader("Badge sheet")
sheet = st.file_uploader("Rendered badge sheet (HTML)", type=["html", "htm"])
template_file = st.file_uploader("Template JSON (optional)", type=["json"])

# --- Layout ---
st.subheader("Layout")
col1, col2 = st.columns(2)
with col1:
    size_key = st.selectbox(
        "Page size",
        options=list(PAGE_SIZES),
        format_func=lambda k: f"{PAGE_SIZES[k].name} ({PAGE_SIZES[k].width:g} x {PAGE_SIZES[k].height:g} mm)",
        disabled=template_file is not None,
    )
    bleed = st.number_input("Bleed (mm)", min_value=0.0, max_value=20.0, value=3.0, step=0.5, disabled=template_file is not None)
with col2:
    mode = st.radio(
        "Paging mode",
        options=[PagingMode.SEQUENTIAL.value, PagingMode.BUTTERFLY.value],
        format_func=lambda m: "One page per face" if m == PagingMode.SEQUENTIAL.value else "Butterfly (fold in half)",
    )
    event_name = st.text_input("Event name", value="")

template = None
try:
    if template_file is not None:
        template = Template.from_dict(json.loads(template_file.getvalue().decode("utf-8")))
    else:
        template = Template(page_size=PAGE_SIZES[size_key], bleed=float(bleed))
except (ValueError, KeyError, TypeError) as e:
    st.error(f"Invalid template: {e}")

if template is not None:
    layout = resolve_layout(template, PagingMode(mode))
    st.caption(
        f"Badge **{layout.badge_width_mm:g} x {layout.badge_height_mm:g} mm** (incl. bleed), "
        f"page **{layout.page_width_mm:g} x {layout.page_height_mm:g} mm**, {layout.orientation}."
    )

if st.button("🚀 Generate PDF", type="primary", use_container_width=True, disabled=sheet is None or template is None):
    st.session_state.result = None
    progress_bar = st.progress(0)
    status_text = st.empty()

    def _on_progress(percent: int, current: int, total: int) -> None:
        progress_bar.progress(percent / 100)
        status_text.text(f"Rendering badge {current}/{total}")

    with st.spinner("Rendering badges..."):
        try:
            # Import heavy rendering code only when needed
            from app import BadgePrinter

            printer = BadgePrinter(template, mode=PagingMode(mode), context_name=event_name or "event")
            html = sheet.getvalue().decode("utf-8", errors="replace")
            st.session_state.result = asyncio.run(printer.render(html=html, on_progress=_on_progress))
        except EmptyDocumentError:
            st.error("No badge could be rendered. Check that the sheet contains visible badges.")
        except FinalizeFailure as e:
            st.error(f"Failed to generate PDF: {e}")
        except Exception as e:
            logger.exception("Badge generation failed")
            st.error(f"Unexpected error during generation: {e}")
            st.code(traceback.format_exc())
        finally:
            progress_bar.empty()
            status_text.empty()

result = st.session_state.result
if result is not None:
    s = result.summary
    if s.ok:
        st.success(f"Prepared **{s.pages}** page(s) from **{s.total}** badge face(s).")
    else:
        st.warning(f"Prepared **{s.pages}** page(s); **{s.failed}** of {s.total} badge face(s) were skipped.")
        for f in s.failures[:MAX_LISTED_FAILURES]:
            st.caption(f"{f.label}: {f.stage} - {f.reason}")
    st.download_button(
        "⬇️ Download PDF",
        data=result.data,
        file_name=result.filename,
        mime="application/pdf",
        key="dl_pdf",
    )
elif sheet is None:
    st.info("👆 Upload a rendered badge sheet to begin.")

st.markdown("---")
