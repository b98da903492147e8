"""Rollcall: attendance session lifecycle and aggregation.

This package is organized by feature modules (groups, sessions, records,
reconciliation, stats, notifications) with a thin Flask controller layer
and service/repository layers underneath.
"""
