"""Streamlit admin view for bulk uploads."""
