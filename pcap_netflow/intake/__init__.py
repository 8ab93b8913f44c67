"""Trace discovery, validation, decompression and ordering."""
