"""Knowledge ingestion — chunking, dedup, quota and the doc state machine."""
