"""
Strategy engine.

Requests are classified, routed by the `Dispatcher` to one of three caching
strategies, and served from the network, the cache, or a synthesized offline
response. `OfflineEngine` exposes the entry points a host adapter calls.
"""
