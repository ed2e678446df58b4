"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and skips every test when no
Gemini credential is configured.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv


def pytest_configure(config):
    """Load .env before collection so the pipeline sees the credential pool."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: These tests call Gemini and require a valid GEMINI_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip integration tests when no credential is available."""
    if not (os.getenv("GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY_SECONDARY") or os.getenv("GEMINI_API_KEYS")):
        pytest.skip("Integration tests skipped. Set GEMINI_API_KEY in your .env file.")
