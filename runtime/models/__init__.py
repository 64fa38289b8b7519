"""
Pydantic datamodels used by the GuestHouse runtime.

Split into:
- session_models: Event, SessionPrompt, Guest, Response, SessionContext, messages
- api_models: HTTP request/response schemas
"""
