"""
Extraction — per-source text extraction.

URLs go through three escalating tiers (static HTML, embedded JSON,
headless render); PDFs are parsed locally first with an AI fallback;
images are read by a vision model.
"""
