"""Realtime ingestion and state-synchronisation core.

Modules
───────
  severity      — total order over severity levels
  connection    — reconnecting alert channel (websockets)
  buffer        — bounded newest-first alert buffer
  annotations   — investigation status keyed by alert class
  notifications — desktop-notification decisions and side effects
  sampler       — cumulative counters → bounded rate series
  poller        — periodic /api/stats poll feeding the sampler
  filters       — predicate evaluation and saved filter presets
  export        — JSON / CSV export of alerts and history
"""
