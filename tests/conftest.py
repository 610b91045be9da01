"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Import sclscan modules
from sclscan.config import reset_config
from sclscan.scanner import read_source, scan_source


# =============================================================================
# PATH FIXTURES
# =============================================================================

@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def motor_path(fixtures_dir):
    """A well-formed function block with no diagnostics."""
    return fixtures_dir / "motor.scl"


@pytest.fixture
def messy_path(fixtures_dir):
    """Lower-case keywords, duplicates, missing pragma/VERSION, stray EXIT."""
    return fixtures_dir / "messy.scl"


@pytest.fixture
def loose_path(fixtures_dir):
    """Declaration without a terminating semicolon."""
    return fixtures_dir / "loose_declaration.scl"


# =============================================================================
# SOURCE FIXTURES
# =============================================================================

@pytest.fixture
def motor_source(motor_path):
    return read_source(motor_path)


@pytest.fixture
def messy_source(messy_path):
    return read_source(messy_path)


@pytest.fixture
def motor_model(motor_source):
    return scan_source(motor_source, "motor.scl")


# =============================================================================
# ISOLATION
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config files and environment overrides out of every test."""
    monkeypatch.setattr("sclscan.config.CONFIG_SEARCH_PATHS", [tmp_path / ".sclscan.yaml"])
    monkeypatch.delenv("SCLSCAN_CACHE_PATH", raising=False)
    monkeypatch.delenv("SCLSCAN_DEBOUNCE_MS", raising=False)
    reset_config()
    yield
    reset_config()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def block_source(body: str, kind: str = "FUNCTION_BLOCK", name: str = "FB_Test",
                 header: str = "{ S7_Optimized_Access := 'TRUE' }\nVERSION : 0.1\n") -> str:
    """Wrap body lines in a block with pragma and VERSION."""
    closer = "END_" + kind
    return f'{kind} "{name}"\n{header}{body}\n{closer}\n'


def codes(diagnostics) -> list:
    """Diagnostic codes in order."""
    return [d.code for d in diagnostics]
