from .nfse import extract, extract_file

__all__ = ["extract", "extract_file"]
