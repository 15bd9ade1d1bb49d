"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskDependency, query params)
- task_store.py: in-memory store with the dependency edge arena
- task_transitions.py: the status transition table
- task_validation.py: create/update payload checks
- critical_path.py: CPM forward/backward passes and the default duration estimator
- task_service.py: business rules exposed to callers
"""
