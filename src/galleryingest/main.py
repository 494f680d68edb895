"""
Streamlit admin application for galleryingest.

Run with ``streamlit run src/galleryingest/main.py``.
"""

import streamlit as st

from galleryingest.errors import AuthorizationError
from galleryingest.logging_config import configure_structured_logging, get_logger
from galleryingest.services.auth import get_admin_guard
from galleryingest.ui.pages.bulk_upload import render_bulk_upload_page

configure_structured_logging()
logger = get_logger(__name__)


def main() -> None:
    """Main application entry point."""
    logger.info("application_starting", page="bulk_upload")

    st.set_page_config(page_title="Gallery - 批量上传", page_icon="📸", layout="wide")

    try:
        user = get_admin_guard().require_admin(dict(st.context.headers))
    except AuthorizationError as e:
        st.error(e.user_message)
        st.stop()
        return

    st.sidebar.caption(f"已登录：{user.email}")
    render_bulk_upload_page()


if __name__ == "__main__":
    main()
