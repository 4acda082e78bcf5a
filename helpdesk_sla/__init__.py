"""
Helpdesk SLA
============

Service Level Agreement tracking for a multi-tenant helpdesk.
"""

__version__ = "1.0.0"
