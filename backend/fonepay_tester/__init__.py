"""
Fonepay QR Tester backend.

Signs Dynamic QR requests, forwards them to the provider, records every
call and relays asynchronous payment notifications.
"""

__version__ = "0.1.0"
