"""
Pipeline module for CNPJ enrichment runs.

Provides input loading, checkpointing, output buffering and the sequential
batch worker. The CLI is a thin layer over `run_enrichment()`.
"""
