"""
GitHub → Vault Inbox Sync

Pulls markdown notes from a folder in a GitHub repository into a local
note vault, remembering which remote files were already imported.
"""

__version__ = "1.0.0"
