# confdesk/schemas/__init__.py
"""
Schema module initialization.
Exports all schema classes from submodules for convenient imports.
"""
from .auth import *
from .admin import *
from .review import *
from .message import *
from .payment import *
