"""Pytest configuration for sigrid tests.

Puts the project root on sys.path (tests import ``tests.fakes``) and keeps
every test away from the developer's real ``~/.sigrid`` and provider keys.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

PROVIDER_ENV_KEYS = [
    "SIGRID_API_KEY",
    "ANTHROPIC_BASE_URL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "ANTHROPIC_API_KEY",
    "OPENROUTER_API_KEY",
]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory, monkeypatch):
    """Fresh HOME per test; user-tier config and stores land under it."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    for key in PROVIDER_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return home
