# confdesk/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: default admin creation on first startup
- db: Database configuration and connection management
- errors: JSON error envelopes and exception handlers
- ids: submission / booking id generation
- mailer, outbox: outbound email and durable side-effect delivery
- policy: role policy table and ownership checks
- security: password hashing, JWT tokens, one-time secrets
- storage: object store client for uploaded files
- workflow: paper status state machine
"""
