"""
Infrastructure Module
======================

Cross-cutting infrastructure shared by every bounded context.
"""
