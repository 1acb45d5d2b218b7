"""idswatch — realtime alert ingestion core for the network IDS dashboard.

Packages
────────
  contracts — canonical data classes shared by all modules
  shared    — logging, YAML config, persistent key-value storage
  core      — connection manager, buffer, annotations, notifications,
              rate sampler, filter engine, stats poller, export
  session   — owned service container wiring the core together
  cli       — argparse entry-point
"""

__version__ = "0.3.0"
