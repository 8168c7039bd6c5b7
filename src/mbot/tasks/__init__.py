"""
Task subsystem.

Components:
- task_models.py: data structures (TaskRecord)
- task_store.py: in-memory authoritative store (copy-on-write, serialized mutations)
- markdown_sync.py: checklist load/render, reload and write-through to disk
- file_watch.py: optional reload on manual edits (watchdog)
"""
