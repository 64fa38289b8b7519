"""
Runtime package for the GuestHouse live-session server.

This package contains:
- API layer (FastAPI server + routes)
- Agents (session coordination, analytics)
- Realtime (broadcast hub + notification sinks)
- Stores (events/prompts/guests/responses, activity logs)
- Models (Pydantic models for rows, requests and messages)
"""
