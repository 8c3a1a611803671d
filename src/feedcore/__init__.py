"""feedcore — ingestion and normalization core of a terminal feed reader."""

__version__ = "0.1.0"
