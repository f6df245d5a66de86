"""Summary: Storage backends for InboxForge.

Importance: Groups persistence code behind a single package.
Alternatives: Keep storage helpers inside the services module.
"""
