"""
Storage abstractions for the GuestHouse runtime.

Includes:
- GuestHouseStore: events, prompts, guests and responses (in-memory + file-backed)
- LogStore: append-only JSONL activity log
"""
