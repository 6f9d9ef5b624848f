"""atlas-probes: metro-anchored RIPE Atlas probe selection and result streaming."""

__version__ = "0.1.0"
