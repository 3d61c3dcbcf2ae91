"""
Services Module

Domain operations shared by several routers:
- assignments: versioned writes to a paper's assignment lists
- notifications: notification mails recorded in the outbox
- selection: copyright approval fan-out to the selected-users table
"""
