"""
tgauth - Telegram Authentication Service

Passwordless login for web applications through a Telegram bot.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- auth: Deeplink tokens, login codes, login widget and 2FA challenges
- session: Authenticated session management
- dispatch: Delivery of authentication results
- audit: Audit trail of authentication events
- storage: Data persistence abstraction
- api: REST API interface
"""

__version__ = "1.0.0"
