"""Subprocess adapters for nfcapd, softflowd and nfdump."""
