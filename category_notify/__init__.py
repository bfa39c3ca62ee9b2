"""
Forum Category Notifications

Tracks which users are subscribed to which forum categories and fans out
in-app notifications and emails to them when new topics or replies are posted.
"""

__version__ = "0.1.0"
