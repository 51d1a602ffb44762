"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Event, TaskStatus) and stored field names
- task_store.py: live, ordered views over the tasks/events collections
- task_api.py: permission-checked mutations (move, claim, reassign, delete, create)
- board.py: derived board views (columns, available, due soon, completed)
"""
