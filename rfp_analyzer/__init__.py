# CUI // SP-PROPIN
"""RFP Analyzer - document ingestion, multi-provider AI analysis, and
proposal response generation."""

__version__ = "1.0.0"
