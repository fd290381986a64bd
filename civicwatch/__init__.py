"""
CivicWatch
==========

Civic complaint lifecycle service: admission, official actions and
SLA-driven escalation.
"""

__version__ = "1.0.0"
