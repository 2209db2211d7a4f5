"""
Sluice: record-routing processors for flow-based data runtimes.

Ships a bulk search-index writer, a bitmask router and a discarding batch
gate, plus a small in-process host for running them outside a full runtime.
"""

__version__ = "0.1.0"
