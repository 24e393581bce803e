# CUI // SP-PROPIN
"""Record store for processed documents, analyses and responses."""
