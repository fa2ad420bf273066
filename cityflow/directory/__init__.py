"""
Directory Module
================

Bounded context for the organisation the CRM routes against.

Responsibilities:
- Staff profiles and roles
- Regions and their managers
- City to region mapping
- Functional teams and one city team per region
- Issue types with default SLA hours, team and assignee
- Routing and SLA rule tables (stored for administration only)
"""
