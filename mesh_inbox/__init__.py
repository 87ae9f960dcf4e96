"""
Mesh Inbox
===========

Per-continuum priority inboxes over the shared mesh Redis, reachable
through REST routes, NQP envelopes, compact query strings and a
search-string DSL.
"""

__version__ = "1.0.0"
