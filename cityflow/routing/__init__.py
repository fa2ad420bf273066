"""
Routing Bounded Context
========================

City -> region, region -> manager/city team and issue-type default
resolution, composed into the assignment previewed and committed for a
ticket.

Responsibilities:
- Refuse tickets whose city is not mapped to a region
- Fill missing assignee, team or manager with placeholders
- Freeze the SLA due time at commit
"""
