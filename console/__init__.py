"""
Rider Ops Console: optimistic-mutation reconciliation layer.

Keeps every dashboard list responsive while writes are in flight.
Responsibilities:
- Pending patches laid over the last server snapshot (patches, merge)
- Processing set and per-item batch outcomes (batch)
- Per-id detail objects with in-flight de-duplication (detail_cache)
- Interval and visibility driven refresh (scheduler)
- Operator notices for every success and failure (notifications)
- One store per resource type, shared by all of its views (store, session)
- Endpoint and wire-format knowledge per screen (resources)
"""
