"""API module for growthlab.

- Validates inputs, reads/writes DB through repo and lab services
- Returns camelCase payloads for the dashboard UI
- Forbidden: metric math and variant migration logic (delegated)
"""
