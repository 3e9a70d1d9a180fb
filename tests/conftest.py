import sys
import os

import pytest

# Add backend/ to path so tests can import backend modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

# Add scripts/ to path so tests can import script modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))

SAMPLE_DATA_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "data"))


@pytest.fixture(scope="session")
def sample_data_dir():
    return SAMPLE_DATA_DIR


@pytest.fixture(scope="session")
def sample_data(sample_data_dir):
    """The repo's sample catalog, presets and requirements, loaded once."""
    from data_loader import load_data
    return load_data(sample_data_dir)
