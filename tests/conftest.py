"""Pytest configuration and shared fixtures"""

import pytest

PROVIDER_ENV_VARS = [
    "PRIMARY_PROVIDER",
    "FALLBACK_PROVIDERS",
    "OPENAI_API_KEY",
    "GROQ_API_KEY",
    "GOOGLE_API_KEY",
    "NVIDIA_API_KEY",
    "OPENROUTER_API_KEY",
    "SWITCHBOARD_WORKING_DIR",
    "SWITCHBOARD_SYSTEM_PROMPT_FILE",
]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep credentials and fallback order out of the user's config dir"""
    home = tmp_path / "switchboard-home"
    monkeypatch.setenv("SWITCHBOARD_HOME", str(home))
    for var in PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield home
