"""
ThreatWatch Ingestion Module
============================

Content extraction helpers for feed items.

This module handles:
- HTML to plain text conversion for feed bodies
- Text normalization for keyword matching
"""
