"""Sync + enrichment scheduler.

One tick runs the listing sync and then the enrichment pass against the same
SQLite database. A named lock in that database keeps two schedulers from
overlapping. CLI entrypoint: `python -m fedresurs_leasing run`.
"""
