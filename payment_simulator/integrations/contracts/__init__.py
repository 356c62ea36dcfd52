"""
Contracts (data models).

This folder defines the shapes exchanged with callers and webhook receivers:
- Transaction records and their status/method enums
- Webhook delivery results
- Provider-style payloads (STK callback envelope, bank completion result)

Both the engine and the HTTP layer should use these contracts instead of
building ad-hoc dicts.
"""
