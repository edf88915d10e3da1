"""
Content ingestion — turns business-supplied text, web pages, PDFs and
images into embedded knowledge chunks or reviewable catalog proposals.
"""
