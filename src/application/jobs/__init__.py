"""Background jobs for content organization.

This module contains scheduled jobs for:
- Batch analysis and auto-organization of queued items
"""
