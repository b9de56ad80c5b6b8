"""Streamlit entry point: `streamlit run app.py`."""

from woz_replay.ui_app import ReplayApp

ReplayApp()
