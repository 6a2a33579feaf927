"""sheetstore.core -- errors, logging, settings, hashing and the backend protocol.

Nothing in ``core`` knows about tables; the engine builds on it.
"""
