# confdesk/models/__init__.py
"""
Database models module initialization.
Exports all database models for convenient imports throughout the application.

Models exported:
- User: account with one of the roles Author, Editor, Reviewer, Admin
- PaperSubmission / UserSubmission: submitted papers and the author's submission index
- ReviewerReview / ReReview: round 1 and round 2 reviews
- PaperMessage / ReviewerMessage / SupportMessage: message threads
- Copyright / ConferenceSelectedUser: copyright forms and selected authors
- FinalAcceptance / PaymentRegistration / PaymentDoneFinalUser: registration and payment
- OutboxEntry: pending emails and fan-out writes
"""
from .user import User
from .paper import PaperSubmission, UserSubmission
from .review import ReviewerReview, ReReview
from .message import PaperMessage, ReviewerMessage, SupportMessage
from .copyright import Copyright, ConferenceSelectedUser
from .payment import FinalAcceptance, PaymentRegistration, PaymentDoneFinalUser
from .outbox import OutboxEntry
