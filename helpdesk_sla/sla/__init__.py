"""
SLA Module
==========

Bounded Context for helpdesk Service Level Agreements.

Responsibilities:
- Store per-tenant SLA configurations by priority and category
- Calculate first-response and resolution due dates
- Track each ticket's legs as compliant, at_risk or breached
- Keep an append-only audit log of SLA events
- Derive alerts, compliance reports and statistics
- Sweep open legs in the background and notify Slack on transitions
"""

__version__ = "1.0.0"
