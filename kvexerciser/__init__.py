"""
KV-Exerciser: Manual Exercising Tool for Key-Value Cache Services

Drives CRUD, expiration, event-subscription, benchmark and concurrent
load operations against one or more live cache connections and reports
the outcomes.
"""

__version__ = "1.0.0"
__author__ = "Student Name"
