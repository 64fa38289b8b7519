"""
Realtime fan-out for live sessions.

- broadcast: in-process pub/sub hub with named channels
- notifier: the two notification sinks (broadcast messages and row-level
  change notifications) behind StateChangePublisher
"""
