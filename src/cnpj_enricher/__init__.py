"""
cnpj_enricher: resumable CNPJ enrichment against the public CNPJ lookup API.

Reads a list of CNPJs, queries one identifier at a time at a fixed pace, and
writes the combined results to a CSV or XLSX file. Progress is checkpointed so
an interrupted run picks up where it stopped.
"""

__version__ = "0.1.0"
