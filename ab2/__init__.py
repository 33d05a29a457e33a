"""ab2: fetch files into the ingest bucket and trigger downstream processing."""

__version__ = "0.1.0"
