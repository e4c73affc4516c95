"""Streamlit chat widget with a PDF co-navigation pane.

Talks to the FastAPI service over HTTP (``WIDGET_API_URL``).
Run with: streamlit run streamlit_app.py
"""

import asyncio

import httpx
import streamlit as st

from kbchat.client import ApiError, WidgetApiClient
from kbchat.config import settings
from kbchat.core.citations import select_citation
from kbchat.core.pdf_pages import PDFProcessingError, clamp_page, render_page
from kbchat.core.polling import PollingPolicy
from kbchat.core.readiness import ReadinessMachine, ReadinessState
from kbchat.models.schemas import MessageRole

# ---------------------------------------------------------------------------
# Page config — must be first Streamlit call
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Company Assistant",
    page_icon="💬",
    layout="wide",
    initial_sidebar_state="collapsed",
)

_ZOOM_STEP = 25
_ZOOM_MIN = 50
_ZOOM_MAX = 300
_BASE_WIDTH = 700


@st.cache_resource
def _client() -> WidgetApiClient:
    return WidgetApiClient(settings.widget_api_url)


@st.cache_data(show_spinner=False)
def _load_pdf(file_name: str) -> bytes:
    return asyncio.run(_client().fetch_document(file_name))


@st.cache_data(show_spinner=False, ttl=60)
def _load_documents() -> dict[str, int]:
    """File name → page count."""
    try:
        documents = asyncio.run(_client().list_documents())
    except (ApiError, httpx.HTTPError):
        return {}
    return {d.file_name: d.page_count for d in documents}


def _jump_to(file_name: str, page: int) -> None:
    st.session_state.viewer_file = file_name
    st.session_state.viewer_page = page


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------
if "machine" not in st.session_state:
    st.session_state.machine = ReadinessMachine(
        _client(),
        PollingPolicy(
            max_attempts=settings.client_poll_max_attempts,
            interval_seconds=settings.client_poll_interval_seconds,
            backoff_factor=settings.poll_backoff_factor,
            max_interval_seconds=settings.poll_max_interval_seconds,
        ),
    )
    st.session_state.viewer_file = None
    st.session_state.viewer_page = 1
    st.session_state.zoom = "fit"

machine: ReadinessMachine = st.session_state.machine

# ---------------------------------------------------------------------------
# Header + readiness
# ---------------------------------------------------------------------------
st.title("💬 Company Assistant")
status_placeholder = st.empty()


def _show_status(m: ReadinessMachine) -> None:
    if m.state is ReadinessState.READY:
        status_placeholder.success(m.status_text, icon="✅")
    elif m.state is ReadinessState.ERROR:
        status_placeholder.error(m.status_text, icon="⚠️")
    else:
        status_placeholder.info(m.status_text, icon="⏳")


machine.on_change = _show_status
_show_status(machine)

if machine.state is ReadinessState.UNINITIALIZED:
    with st.spinner("Preparing the knowledge base..."):
        asyncio.run(machine.start())

if machine.state in (ReadinessState.STILL_PREPARING, ReadinessState.ERROR):
    if st.button("🔄 Check again"):
        if machine.state is ReadinessState.ERROR:
            asyncio.run(machine.retry())
        else:
            asyncio.run(machine.poll())
        st.rerun()

chat_col, pdf_col = st.columns([3, 2])

# ---------------------------------------------------------------------------
# Left pane — conversation
# ---------------------------------------------------------------------------
with chat_col:
    for msg in machine.conversation.messages:
        role = "user" if msg.role is MessageRole.USER else "assistant"
        with st.chat_message(role):
            st.markdown(msg.text)
            st.caption(msg.timestamp.astimezone().strftime("%H:%M:%S"))
            for i, citation in enumerate(msg.citations):
                st.button(
                    f"📄 {citation.file_name} — page {citation.page}",
                    key=f"cite_{msg.id}_{i}",
                    on_click=_jump_to,
                    args=(citation.file_name, citation.page),
                )

if prompt := st.chat_input(
    "Ask me anything about our company...",
    disabled=not machine.can_send,
):
    with st.spinner("Thinking..."):
        reply = asyncio.run(machine.send(prompt))
    if reply is not None and reply.citations:
        chosen = select_citation(list(reply.citations), st.session_state.viewer_file)
        _jump_to(chosen.file_name, chosen.page)
    st.rerun()

# ---------------------------------------------------------------------------
# Right pane — PDF viewer
# ---------------------------------------------------------------------------
with pdf_col:
    documents = _load_documents() if machine.state is ReadinessState.READY else {}
    if not documents:
        st.info("The cited document will appear here.")
    else:
        names = list(documents)
        if st.session_state.viewer_file not in documents:
            st.session_state.viewer_file = names[0]
            st.session_state.viewer_page = 1

        current = st.selectbox(
            "Document", names, index=names.index(st.session_state.viewer_file),
        )
        if current != st.session_state.viewer_file:
            _jump_to(current, 1)

        page_count = documents[current]
        page = clamp_page(st.session_state.viewer_page, page_count)

        toolbar = st.columns([1, 1, 1, 2, 2])
        if toolbar[0].button("−", help="Zoom out") and st.session_state.zoom != "fit":
            st.session_state.zoom = max(st.session_state.zoom - _ZOOM_STEP, _ZOOM_MIN)
        if toolbar[1].button("Fit", help="Fit to width"):
            st.session_state.zoom = "fit"
        if toolbar[2].button("+", help="Zoom in"):
            zoom = st.session_state.zoom
            st.session_state.zoom = 125 if zoom == "fit" else min(zoom + _ZOOM_STEP, _ZOOM_MAX)
        toolbar[3].markdown(
            "**Fit**" if st.session_state.zoom == "fit" else f"**{st.session_state.zoom}%**"
        )

        try:
            pdf_bytes = _load_pdf(current)
        except (ApiError, httpx.HTTPError):
            st.error(f"Document '{current}' is unavailable right now.")
        else:
            toolbar[4].download_button(
                "Download", pdf_bytes, file_name=current, mime="application/pdf",
            )
            page = st.number_input(
                f"Page (of {page_count})", min_value=1, max_value=page_count, value=page,
            )
            st.session_state.viewer_page = page
            try:
                image = render_page(pdf_bytes, page)
            except PDFProcessingError as exc:
                st.error(f"Failed to load PDF: {exc}")
            else:
                if st.session_state.zoom == "fit":
                    st.image(image, use_container_width=True)
                else:
                    st.image(image, width=int(_BASE_WIDTH * st.session_state.zoom / 100))
