"""Time-bucketed archival of a growing Airtable table into per-period bases."""

__version__ = "0.1.0"
