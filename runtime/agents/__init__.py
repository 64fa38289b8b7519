"""
Agents used by the GuestHouse runtime.

- LiveSessionCoordinator: host-driven prompt sequencing, joins, responses
  and scoring for one live event at a time
- session_analytics: leaderboard ranking and post-session statistics
"""
