"""Fused tile partitioning of CNN feature maps, with exchange of overlapped tile data."""

__version__ = "0.1.0"