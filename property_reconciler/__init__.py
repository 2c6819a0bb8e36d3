"""
Property Reconciler — one consistent property record from many unreliable sources.

Architecture: Concurrent source fetch → Field reconciliation → Room synthesis → Unified record
Philosophy:  Authority beats confidence. Disagreements are data, not errors.
"""

__version__ = "1.0.0"
