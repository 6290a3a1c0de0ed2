import asyncio
import datetime
import logging
from typing import Optional

import streamlit as st

from backend import state as transitions
from backend.credentials import CredentialStore
from backend.errors import DiagramStudioError
from backend.model import DiagramVariant, EncodedImage, StyleCategory
from backend.orchestrator import edit_selected, generate_all
from backend.state import WorkflowState, WorkflowStore
from config.settings import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


# ==========================
# Config
# ==========================
st.set_page_config(
    page_title="Network Diagram Studio",
    page_icon="🖧",
    layout="wide",
)

st.title("🖧 Network Diagram Studio")
st.caption("Turn a hand-drawn topology sketch into clean diagrams, then refine them in plain words")

# ==========================
# State
# ==========================
if "store" not in st.session_state:
    st.session_state["store"] = WorkflowStore()

if "credentials" not in st.session_state:
    st.session_state["credentials"] = CredentialStore()

if "source_token" not in st.session_state:
    st.session_state["source_token"] = None

if st.session_state.pop("clear_edit_prompt", False):
    st.session_state["edit_prompt"] = ""

store: WorkflowStore = st.session_state["store"]
credentials: CredentialStore = st.session_state["credentials"]


# ==========================
# API key gate
# ==========================
def key_selection_form() -> None:
    st.subheader("🔑 An API key is required")
    st.write(
        "Diagram generation uses a Gemini image model. Enter a key from a Google AI Studio "
        "project with billing enabled."
    )
    st.markdown("[Billing documentation](https://ai.google.dev/gemini-api/docs/billing)")

    with st.form("api_key_form"):
        entered = st.text_input("Gemini API key", type="password")
        submitted = st.form_submit_button("Use this key", use_container_width=True)

    if submitted:
        async def selector() -> Optional[str]:
            return entered

        credentials.selector = selector
        try:
            asyncio.run(credentials.prompt_for_credential())
        except DiagramStudioError as e:
            st.error(f"❌ {e}")
            return
        if credentials.has_active_credential():
            st.rerun()
        st.warning("⚠️ The key is empty")


if not credentials.has_active_credential():
    key_selection_form()
    st.stop()


# ==========================
# Sidebar
# ==========================
with st.sidebar:
    st.header("⚙️ Settings")
    st.markdown(f"**Model:** `{settings.GEMINI_MODEL}`")
    st.markdown(f"**Output:** {settings.ASPECT_RATIO}, {settings.IMAGE_SIZE}")

    if st.button("🔑 Change API key", use_container_width=True):
        credentials.set_api_key(None)
        st.rerun()

    st.markdown("---")
    st.markdown("### 💡 Edit examples")
    st.code("move node HUB to the left")
    st.code("add a firewall between ROUTER and SW01")
    st.code("label the uplink 10 Gbps")


# ==========================
# Helpers
# ==========================
def render_variant(variant: DiagramVariant, selected_id: Optional[str], interactive: bool) -> None:
    caption = f"Variant {variant.index}"
    if variant.status == "pending":
        st.info(f"⏳ {caption}: generating...")
    elif variant.status == "failed":
        st.error(f"❌ {caption}: {variant.error_message}")
    else:
        marker = " ✅ selected" if variant.id == selected_id else ""
        st.image(variant.image.data, caption=caption + marker, use_container_width=True)
        if interactive and st.button("🔍 Preview", key=f"preview_{variant.id}", use_container_width=True):
            preview_dialog(variant.id)


def render_grid(state: WorkflowState, interactive: bool = True) -> None:
    for style in StyleCategory:
        st.markdown(f"#### {style.label}")
        cols = st.columns(settings.VARIANTS_PER_STYLE)
        row = [v for v in state.variants if v.style == style]
        for col, variant in zip(cols, row):
            with col:
                render_variant(variant, state.selected_id, interactive)


def download_button(variant: DiagramVariant, key: str) -> None:
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    ext = EXTENSIONS.get(variant.image.mime_type, "png")
    st.download_button(
        "⬇️ Download",
        data=variant.image.data,
        file_name=f"network_diagram_{variant.id}_{ts}.{ext}",
        mime=variant.image.mime_type,
        key=key,
        use_container_width=True,
    )


@st.dialog("Preview", width="large")
def preview_dialog(variant_id: str) -> None:
    variant = store.state.get_variant(variant_id)
    if variant is None or variant.image is None:
        st.warning("⚠️ This diagram is no longer available")
        return
    st.image(variant.image.data, caption=f"{variant.style.label} / Variant {variant.index}")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("✏️ Select for editing", type="primary", use_container_width=True):
            try:
                store.dispatch(transitions.select_variant, variant_id)
            except DiagramStudioError as e:
                st.error(f"❌ {e}")
                return
            st.rerun()
    with col2:
        download_button(variant, key=f"download_preview_{variant_id}")


# ==========================
# Upload
# ==========================
uploaded = st.file_uploader("📤 Upload a sketch", type=["png", "jpg", "jpeg", "webp"])

if uploaded is not None:
    token = (uploaded.name, uploaded.size)
    if token != st.session_state["source_token"]:
        st.session_state["source_token"] = token
        store.dispatch(
            transitions.set_source,
            EncodedImage(data=uploaded.getvalue(), mime_type=uploaded.type or "image/png"),
        )

state = store.state

if state.source is None:
    st.info("Upload a hand-drawn network sketch to get started.")
    st.stop()

left, right = st.columns([1, 2])

with left:
    st.image(state.source.data, caption="Original sketch", use_container_width=True)
    generate_clicked = st.button(
        "✨ Generate diagrams",
        type="primary",
        disabled=state.is_generating,
        use_container_width=True,
    )

with right:
    grid = st.empty()

if generate_clicked:
    # Redraw the grid after every transition while the batch runs
    def redraw(new_state: WorkflowState) -> None:
        with grid.container():
            render_grid(new_state, interactive=False)

    unsubscribe = store.subscribe(redraw)
    try:
        asyncio.run(generate_all(store, credentials))
    except DiagramStudioError as e:
        st.error(f"❌ {e}")
    finally:
        unsubscribe()
    st.rerun()

with grid.container():
    if state.variants:
        render_grid(state)
    else:
        st.caption("Generated diagrams will appear here.")


# ==========================
# Edit selected diagram
# ==========================
selected = state.selected
if selected is not None:
    st.markdown("---")
    st.subheader(f"✏️ Editing: {selected.style.label} / Variant {selected.index}")

    col1, col2 = st.columns([2, 1])
    with col1:
        st.image(selected.image.data, use_container_width=True)
    with col2:
        instruction = st.text_area(
            "What should change?",
            key="edit_prompt",
            placeholder="e.g. Move ALRIT between HUB and SEIRIOS",
            height=120,
        )
        apply_clicked = st.button(
            "🪄 Apply edit",
            type="primary",
            disabled=state.is_editing or not instruction.strip(),
            use_container_width=True,
        )
        download_button(selected, key=f"download_selected_{selected.id}")

    if apply_clicked:
        try:
            with st.spinner("🎨 Applying your edit..."):
                applied = asyncio.run(edit_selected(store, instruction, credentials))
        except Exception as e:
            st.error(f"❌ Edit failed: {e}")
        else:
            if applied:
                st.session_state["clear_edit_prompt"] = True
                st.rerun()
            st.warning("⚠️ The edit was not applied, the diagram was replaced in the meantime")
