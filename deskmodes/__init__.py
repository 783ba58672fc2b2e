"""
DeskModes

Declare named modes of running applications and switch between them.
Provides the reconciliation engine, the persistent configuration store and
Dock synchronization; presentation is left to the embedding application.
"""

__version__ = "1.0.0"
__author__ = "DeskModes Team"
