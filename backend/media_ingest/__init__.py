"""Media ingest service: multipart uploads and the transcode queue."""

__version__ = "0.1.0"
