"""Render the DANFSe, the printable document of a national NFS-e."""

__version__ = "0.1.0"
