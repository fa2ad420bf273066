"""
SLA Monitoring Module
=====================

Bounded context for SLA due times and their live status.

Responsibilities:
- Compute due times from issue-type SLA hours
- Evaluate on-track / warning / breached and the remaining/overdue label
- Refresh stored statuses of open tickets on an interval
- Notify the escalation webhook of breaches and manual escalations
"""
