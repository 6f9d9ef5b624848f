"""Probe selection around a metro code."""

from atlas_probes.selection.probes import ProbeSelector, filter_probes, matches_address_family

__all__ = ["ProbeSelector", "filter_probes", "matches_address_family"]
