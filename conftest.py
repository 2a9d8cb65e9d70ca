"""Loads .env.test ahead of ``chat_relay.config`` so settings see test values.

Variables already exported in the shell win over the file.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent

load_dotenv(ROOT / ".env.test", override=False)
