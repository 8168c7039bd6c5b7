"""
mbot: a checklist-backed task list with cron-style background jobs.

The checklist file is the durable source of truth; TaskStore holds the live copy,
the scheduler runs jobs against it and the HTTP API exposes both.
"""

__version__ = "0.1.0"
