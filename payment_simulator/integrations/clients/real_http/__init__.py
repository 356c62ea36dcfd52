"""
Real HTTP clients.

These clients make real network calls. The simulator only ever talks to the
callback URLs supplied by callers, so this holds the webhook dispatcher.
"""

from .webhooks import WebhookDispatcher

__all__ = ["WebhookDispatcher"]
