"""
KingMe - Core Package

The financial state store and reconciliation engine behind the KingMe
personal-finance tracker.

DESIGN PRINCIPLES:
1. The store is the single source of truth
2. Invariants are enforced at write time, in one place
3. Synced data never destroys manually entered data
4. Derived numbers are pure functions of the snapshot
5. Backups are portable, and encrypted backups belong to one wallet
"""

__version__ = "1.0.0"
__author__ = "KingMe Team"
