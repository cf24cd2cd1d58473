# Import key functions for easier access
from .samples import get_sample_files, minimal_nfse
from .fake_canvas import RecordingCanvas

__all__ = [
    'get_sample_files',
    'minimal_nfse',
    'RecordingCanvas',
]
