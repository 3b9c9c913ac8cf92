# conftest.py
import pytest

@pytest.fixture(autouse=True)
def clean_pyextrapfem_env(monkeypatch):
    """Run every test with the library defaults (one thread, no debug checks)."""
    monkeypatch.delenv("PYEXTRAPFEM_NUM_THREADS", raising=False)
    monkeypatch.delenv("PYEXTRAPFEM_DEBUG", raising=False)
