"""
Order-tracking bot for a group chat.

Members create orders with chat commands, admins move them through the
production workflow, and customers get notified of every status change.
"""

__version__ = "1.0.0"
