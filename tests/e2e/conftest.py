# tests/e2e/conftest.py
import os
import sys
from pathlib import Path
from dotenv import load_dotenv
import pytest

from agents.llm import OpenAIChatModel

DEBUG = os.getenv("E2E_DEBUG", "0") in ("1", "true", "yes", "on")

ROOT = Path(__file__).resolve().parents[2]  # repo root
ENV_PATH = ROOT / ".env"
ENV_LOCAL_PATH = ROOT / ".env.local"

def _log(msg: str):
    if DEBUG:
        print(f"[E2E-CONFTEST] {msg}")

_log(f"cwd={Path.cwd()}")
_log(f"repo_root={ROOT}")
_log(f"sys.path[0]={sys.path[0]}")

# Load .env first, then .env.local overriding it
loaded_env = load_dotenv(ENV_PATH, override=False)
loaded_local = load_dotenv(ENV_LOCAL_PATH, override=True)

_log(f"load_dotenv(.env) returned {loaded_env}")
_log(f"load_dotenv(.env.local) returned {loaded_local}")

def _llm_enabled() -> bool:
    run_llm = os.getenv("RUN_LLM_TESTS", "").strip().lower() in ("1", "true", "yes", "y", "on")
    return run_llm and bool(os.getenv("OPENAI_API_KEY"))

def pytest_report_header(config):
    return (
        f"E2E env -> RUN_LLM_TESTS={os.getenv('RUN_LLM_TESTS')!r}, "
        f"OPENAI_API_KEY={'set' if os.getenv('OPENAI_API_KEY') else 'missing'}, "
        f"LLM_TEST_MODEL={os.getenv('LLM_TEST_MODEL')!r}"
    )

def pytest_collection_modifyitems(config, items):
    if _llm_enabled():
        _log("E2E gating: enabled (no skip markers added).")
        return

    reason = "Set OPENAI_API_KEY and RUN_LLM_TESTS=1 in .env.local (or export RUN_LLM_TESTS=1) to run live E2E LLM tests."
    for item in items:
        if "e2e" in item.keywords:
            _log(f"Skipping {item.nodeid}")
            item.add_marker(pytest.mark.skip(reason=reason))

@pytest.fixture
def model():
    """Real chat model in place of the scripted one."""
    return OpenAIChatModel(os.getenv("OPENAI_API_KEY", ""), os.getenv("LLM_TEST_MODEL", "gpt-4o-mini"))
