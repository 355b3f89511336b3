"""
Findvax availability notifier

Matches fresh slot availability against standing SMS subscriptions, sends one
consolidated message per recipient, and retires only the subscriptions that
were confirmed delivered.
"""

__version__ = "0.1.0"
