"""
matchday
Match Rating & Outcome Aggregation Engine for pickup-sports matches.

Collects pre-match rating ballots and post-match outcome surveys, computes
per-player averages and awards, schedules the delayed reveal and freezes
historical snapshots.
"""

__version__ = "1.0.0"
