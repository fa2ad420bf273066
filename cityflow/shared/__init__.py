"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts
(directory, routing, sla, tickets, reporting).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure and the session context

DO NOT add ticket or routing business logic to the shared kernel.
"""

__version__ = "1.0.0"
