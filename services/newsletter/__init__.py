"""
Newsletter subscribers, stored locally and synced to MailerLite.
"""

__version__ = "0.1.0"
