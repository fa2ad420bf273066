"""
CityFlow CRM
============

Ticket-based supplier-issue management for city operations teams.
"""

__version__ = "1.0.0"
