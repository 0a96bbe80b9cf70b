"""Import pipeline for transformed organizations.

Batched, concurrent create-or-skip import with contact-user resolution
and audit logging of every failure and skip.
"""
