"""
Configuration file for pytest.

This file ensures that the src directory is in the Python path
so that tests can import modules from the package.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add the src directory to the Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

SAMPLES_DIR = Path(__file__).parent / "samples"


@pytest.fixture(autouse=True)
def reset_danfse_logger():
    """The CLI stops propagation on the package logger; undo that for caplog."""
    yield
    danfse_logger = logging.getLogger("danfse")
    for handler in list(danfse_logger.handlers):
        danfse_logger.removeHandler(handler)
    danfse_logger.propagate = True
    danfse_logger.setLevel(logging.NOTSET)


@pytest.fixture
def sample_xml_path() -> Path:
    return SAMPLES_DIR / "nfse_sample.xml"


@pytest.fixture
def sample_xml(sample_xml_path) -> bytes:
    return sample_xml_path.read_bytes()


@pytest.fixture
def sample_document(sample_xml):
    from danfse.extract import extract
    return extract(sample_xml)
