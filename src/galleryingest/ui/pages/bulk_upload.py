"""Bulk upload page for the gallery admin."""

from typing import Any

import streamlit as st

from galleryingest.errors import ValidationError
from galleryingest.logging_config import get_logger
from galleryingest.services.grouping import IMAGE_EXTENSIONS, VIDEO_EXTENSIONS, RawFile
from galleryingest.services.ingestion import BatchReport, IngestDefaults, get_ingestion_orchestrator

logger = get_logger(__name__)

UPLOAD_TYPES = sorted(extension.lstrip(".") for extension in IMAGE_EXTENSIONS | VIDEO_EXTENSIONS)


def _initialize_session_state() -> None:
    """Initialize session state variables for bulk upload."""
    if "bulk_upload_report" not in st.session_state:
        st.session_state.bulk_upload_report = None
    if "bulk_upload_in_progress" not in st.session_state:
        st.session_state.bulk_upload_in_progress = False


def to_raw_files(uploaded_files: list[Any]) -> list[RawFile]:
    """Convert Streamlit UploadedFile objects to RawFile."""
    return [
        RawFile(name=uploaded.name, data=uploaded.getvalue(), mime_type=uploaded.type or "")
        for uploaded in uploaded_files
    ]


def failure_rows(report: BatchReport) -> list[dict[str, str]]:
    """Rows of the failure table: one per failing group."""
    return [{"文件": result.key, "错误": result.error or ""} for result in report.failures()]


def render_report(report: BatchReport) -> None:
    """Show the batch summary and, when any group failed, a table of failures."""
    if report.status == "success":
        st.success(report.message)
    else:
        st.error(report.message)

    rows = failure_rows(report)
    if rows:
        with st.expander(f"失败详情（{len(rows)}）", expanded=report.status == "error"):
            st.table(rows)


def render_bulk_upload_page() -> None:
    """Render the bulk upload page."""
    _initialize_session_state()

    st.markdown("### 📤 批量上传")
    st.caption("同名的图片与视频（如 IMG_0001.HEIC + IMG_0001.MOV）会合并为实况照片。")

    with st.form("bulk_upload_form", clear_on_submit=False):
        uploaded_files = st.file_uploader(
            "选择图片和实况视频",
            type=UPLOAD_TYPES,
            accept_multiple_files=True,
            key="bulk_upload_files",
        )
        title = st.text_input("标题（可选）")
        description = st.text_area("描述（可选）")
        post_id = st.text_input("关联文章 ID（可选）")
        submitted = st.form_submit_button("开始上传", type="primary", use_container_width=True)

    if submitted:
        raw_files = to_raw_files(uploaded_files or [])
        defaults = IngestDefaults(title=title or None, description=description or None, post_id=post_id or None)

        st.session_state.bulk_upload_in_progress = True
        progress_bar = st.progress(0.0, text="上传中...")

        def update_progress(key: str, completed: int, total: int) -> None:
            progress_bar.progress(completed / total, text=f"{completed}/{total} · {key}")

        try:
            report = get_ingestion_orchestrator().process_batch(raw_files, defaults, progress_callback=update_progress)
        except ValidationError as e:
            st.warning(e.user_message)
            report = None
        finally:
            st.session_state.bulk_upload_in_progress = False
            progress_bar.empty()

        if report is not None:
            logger.info("bulk_upload_page_completed", success_count=report.success_count, failure_count=report.failure_count)
            st.session_state.bulk_upload_report = report
            st.toast(report.message, icon="✅" if report.status == "success" else "⚠️")

    if st.session_state.bulk_upload_report is not None:
        render_report(st.session_state.bulk_upload_report)
