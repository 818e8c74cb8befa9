from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import streamlit as st

from connectors.shopify.client import CatalogError, ShopifyCatalog
from helpers.eta import BatchProgress
from services.ai_text import PROVIDERS, ProviderError, TextTransformer
from services.content import ContentPublisher
from services.modes import MODE_LABELS, OptimizationMode
from services.prompts import PromptSettings
from services.scoring import score_record
from services.settings import AiConfig, SettingsStore, ShopCredentials
from services.sync import SyncReconciler
from services.table_view import (
    ID_COLUMN,
    META_COLUMNS,
    build_frame,
    collect_edits,
    selection_from_frame,
)
from services.transform import TransformPipeline
from services.workspace import Workspace, WorkspaceError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)

st.set_page_config(page_title="Catalog SEO Workspace", page_icon="🛍️", layout="wide")

st.session_state.setdefault("workspace", Workspace())
st.session_state.setdefault("settings_store", SettingsStore())
st.session_state.setdefault("catalog", None)
st.session_state.setdefault("flash", [])
st.session_state.setdefault("_auto_connect_tried", False)
st.session_state.setdefault("grid_version", 0)

workspace: Workspace = st.session_state["workspace"]
store: SettingsStore = st.session_state["settings_store"]


def _secret(name: str) -> str:
    try:
        value = st.secrets.get(name, "")
    except FileNotFoundError:
        value = ""
    return str(value or os.getenv(name, "")).strip()


def _flash(kind: str, message: str) -> None:
    st.session_state["flash"].append((kind, message))


def _show_flash() -> None:
    for kind, message in st.session_state["flash"]:
        getattr(st, kind)(message)
    st.session_state["flash"] = []


def _catalog_for(creds: ShopCredentials) -> ShopifyCatalog:
    return ShopifyCatalog(
        creds.shop,
        creds.token,
        proxy_url=_secret("SHOPIFY_PROXY_URL") or None,
        proxy_key=_secret("SHOPIFY_PROXY_KEY") or None,
    )


def _connect(creds: ShopCredentials) -> None:
    catalog = _catalog_for(creds)
    try:
        records = catalog.fetch_all()
    except CatalogError as exc:
        _LOGGER.error("Connection to %s failed: %s", creds.shop, exc)
        _flash("error", f"Connection error: {exc}")
        return
    store.save_credentials(creds)
    workspace.load(records)
    st.session_state["catalog"] = catalog
    st.session_state["grid_version"] += 1
    _flash("success", f"Loaded {len(records)} products from {creds.shop}")


def _transformer(config: AiConfig) -> TextTransformer | None:
    try:
        return TextTransformer.from_config(config)
    except ProviderError as exc:
        st.error(str(exc))
        return None


def _prompt_settings(config: AiConfig) -> PromptSettings:
    return PromptSettings(language=config.language, brand_terms=tuple(config.brand_terms))


# --- auto-connect from stored credentials ---
if not st.session_state["_auto_connect_tried"]:
    st.session_state["_auto_connect_tried"] = True
    if store.should_auto_connect():
        _connect(store.load_credentials())

stored_creds = store.load_credentials()
ai_config = store.load_ai_config()

# --- sidebar: connection and AI settings ---
with st.sidebar:
    st.header("Shopify")
    with st.form("connect_form"):
        shop = st.text_input("Shop domain", value=stored_creds.shop or _secret("SHOPIFY_SHOP"))
        token = st.text_input(
            "Admin API token",
            value=stored_creds.token or _secret("SHOPIFY_ACCESS_TOKEN"),
            type="password",
        )
        if st.form_submit_button("Connect"):
            _connect(ShopCredentials(shop=shop, token=token))
            st.rerun()

    st.header("AI settings")
    provider = st.selectbox("Provider", PROVIDERS, index=PROVIDERS.index(ai_config.provider))
    gemini_key = st.text_input("Gemini API key", value=ai_config.gemini_key, type="password")
    openai_key = st.text_input("OpenAI API key", value=ai_config.openai_key, type="password")
    openai_model = st.text_input("OpenAI model", value=ai_config.openai_model)
    language = st.text_input("Output language", value=ai_config.language)
    brand_terms = st.text_input(
        "Brand terms to keep out of copy", value=", ".join(ai_config.brand_terms)
    )
    updated_config = AiConfig(
        provider=provider,
        gemini_key=gemini_key,
        openai_key=openai_key,
        openai_model=openai_model,
        language=language,
        brand_terms=[term.strip() for term in brand_terms.split(",") if term.strip()],
    )
    if updated_config != ai_config:
        store.save_ai_config(updated_config)
        ai_config = updated_config

st.title("Catalog SEO Workspace")
_show_flash()

catalog: ShopifyCatalog | None = st.session_state["catalog"]
if catalog is None:
    st.info("Connect a shop in the sidebar to load its products.")
    st.stop()

status = workspace.status
if status.error:
    st.error(f"Last run failed: {status.error}")

# --- toolbar ---
pending = workspace.pending_ids()
bar = st.columns(6)
if bar[0].button("↶ Undo", disabled=not workspace.can_undo):
    workspace.undo()
    st.session_state["grid_version"] += 1
    st.rerun()
if bar[1].button("↷ Redo", disabled=not workspace.can_redo):
    workspace.redo()
    st.session_state["grid_version"] += 1
    st.rerun()
optimize_clicked = bar[2].button(
    f"✨ Optimize ({len(workspace.selected_ids)})",
    disabled=not workspace.selected_ids
    or not workspace.selected_columns
    or workspace.is_processing,
)
sync_clicked = bar[3].button(f"⬆ Sync all ({len(pending)})", disabled=not pending)
posts_per_record = bar[4].number_input("Posts", min_value=1, max_value=5, value=3)
generate_clicked = bar[5].button(
    "📝 Generate articles",
    disabled=not workspace.selected_ids or workspace.is_processing,
)

# --- column and mode configuration ---
with st.expander("Columns and modes", expanded=False):
    chosen = st.multiselect(
        "Fields to optimize",
        workspace.all_columns,
        default=workspace.selected_columns,
    )
    if chosen != workspace.selected_columns:
        workspace.set_selected_columns(chosen)
    modes = list(OptimizationMode)
    for column in workspace.selected_columns:
        current = workspace.mode_for(column)
        picked = st.selectbox(
            column,
            modes,
            index=modes.index(current),
            format_func=lambda mode: MODE_LABELS[mode],
            key=f"mode_{column}",
        )
        if picked != current:
            workspace.set_column_mode(column, picked)

if optimize_clicked:
    transformer = _transformer(ai_config)
    if transformer is not None:
        progress = BatchProgress("Optimizing")
        try:
            result = TransformPipeline(
                workspace, transformer, prompt_settings=_prompt_settings(ai_config)
            ).run(on_progress=progress.update)
        except WorkspaceError as exc:
            _flash("warning", str(exc))
        else:
            if result.error:
                _flash("error", f"AI error: {result.error}")
            else:
                _flash("success", f"Optimized {len(result.processed)} products")
        finally:
            progress.close()
        st.session_state["grid_version"] += 1
        st.rerun()

if generate_clicked:
    transformer = _transformer(ai_config)
    if transformer is not None:
        progress = BatchProgress("Writing articles")
        try:
            outcome = ContentPublisher(
                workspace,
                catalog,
                transformer,
                shop=catalog.shop,
                posts_per_record=int(posts_per_record),
            ).run(on_progress=progress.update)
        except WorkspaceError as exc:
            _flash("warning", str(exc))
        else:
            if outcome.error:
                _flash("error", f"Blog generation error: {outcome.error}")
            else:
                blog = (outcome.container or {}).get("title", "")
                _flash("success", f"{len(outcome.created)} articles published to \"{blog}\"")
        finally:
            progress.close()
        st.rerun()

if sync_clicked:
    with st.spinner("Syncing to Shopify..."):
        report = SyncReconciler(workspace, catalog).sync_all()
    if report.errors:
        _flash("error", f"{len(report.errors)} products failed to sync")
    if report.synced:
        _flash("success", f"Synced {len(report.synced)} products")
    st.session_state["grid_version"] += 1
    st.rerun()

# --- grid ---
term = st.text_input("Search by name or SKU", "")
visible = workspace.search(term)
frame = build_frame(workspace, visible)
edited = st.data_editor(
    frame,
    key=f"grid_{st.session_state['grid_version']}",
    hide_index=True,
    disabled=[name for name in META_COLUMNS if name != "selected"],
    column_config={
        "selected": st.column_config.CheckboxColumn("✓"),
        "score": st.column_config.ProgressColumn("SEO", min_value=0, max_value=100),
    },
    use_container_width=True,
)

changed = False
for record_id, field_name, value in collect_edits(frame, edited):
    workspace.set_field_value(record_id, field_name, value)
    changed = True

visible_ids = set(frame[ID_COLUMN]) if not frame.empty else set()
ticked = selection_from_frame(edited)
kept = [rid for rid in workspace.selected_ids if rid not in visible_ids]
if set(kept + ticked) != set(workspace.selected_ids):
    workspace.set_selection(kept + ticked)
    changed = True
if changed:
    st.rerun()

# --- per-record details ---
st.subheader("Product details")
ids = [record.id for record in visible]
if ids:
    record_id = st.selectbox(
        "Product",
        ids,
        format_func=lambda rid: f"{workspace.get(rid).get('name')} ({rid})",
    )
    record = workspace.get(record_id)
    score, issues = score_record(record)
    st.metric("SEO score", score)
    for issue in issues:
        st.caption(f"• {issue}")
    sync_state = workspace.sync_status(record_id)
    st.write(f"Sync status: **{sync_state.value if sync_state else 'clean'}**")
    if workspace.sync_error(record_id):
        st.error(workspace.sync_error(record_id))
    if workspace.is_dirty(record_id):
        st.write("Changed fields: " + ", ".join(workspace.changed_fields(record_id)))
    left, right = st.columns(2)
    if left.button("Revert to original", disabled=not workspace.can_revert(record_id)):
        workspace.revert(record_id)
        st.session_state["grid_version"] += 1
        st.rerun()
    if right.button("Sync this product"):
        report = SyncReconciler(workspace, catalog).sync_one(record_id)
        if report.errors:
            _flash("error", report.errors[record_id])
        else:
            _flash("success", f"Synced {record_id}")
        st.session_state["grid_version"] += 1
        st.rerun()
