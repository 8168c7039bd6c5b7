"""
Job subsystem.

Components:
- cron.py: cron expression parsing + next fire instant
- job_models.py: Job, JobState
- job_registry.py: named job definitions, mutable at runtime
- job_scheduler.py: polling tick loop that fires due jobs
- actions.py: built-in actions (remind, reload, purge_done, flush)
"""
