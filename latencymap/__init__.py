"""latencymap: latency measurement between exchange server regions."""

__version__ = "0.1.0"
