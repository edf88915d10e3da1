"""Outbound web access — SSRF guard and the guarded, size-limited fetch."""
