"""Summary: InboxForge classification, folder provisioning, and voice learning core.

Importance: Marks the package root for imports from CLI, API, and tests.
Alternatives: Ship the modules as loose scripts.
"""
