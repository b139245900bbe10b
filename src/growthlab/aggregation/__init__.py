"""Aggregation module for the lab dashboard.

- Reads tests, users and products via repo and produces the lab report
  (KPIs, breakdowns, data-quality counters)
- Forbidden: writing variant documents, HTTP concerns
"""
