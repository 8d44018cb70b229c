"""Watson core: the in-memory state store and the analyzer engine.

Nothing in this package performs I/O or locking; see :mod:`watson.services`
for persistence and the thread-safe service facade.
"""
