"""
Reporting Module
================

Dashboard and report figures computed on demand from ticket lists.
"""
