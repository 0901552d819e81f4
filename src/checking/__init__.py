"""Checking-service integration.

  client.py      → REST client for the checking service (used by the API)
  coordinator.py → check lifecycle state machine (a client of the API)
"""
