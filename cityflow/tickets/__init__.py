"""
Tickets Module
==============

Bounded context for supplier-issue tickets.

Responsibilities:
- Create tickets through the assignment committer
- Inbox listing with filters, search and region scoping
- Status changes, reassignment, escalation and bulk actions
- Comments, replies and two-step attachment upload
- Ticket groups resolved in bulk
"""
