# CUI // SP-PROPIN
"""RFX analysis engine - service layer for the RFP analyzer.

Modules:
    document_processor  - upload, parse (PDF/DOCX/XLSX/ODF/TXT), store
    analyzer            - structured, comprehensive and multi-document analysis,
                          keyword extraction, Q&A assistant, no-AI fallback
    response_generator  - proposal response drafting and enhancement
"""
