"""Mediad AutoDirector source package.

Turns free-text instructions into small typed workflows, runs them, and keeps
recurring ones alive as persisted jobs.

Layers:
    - core: Configuration, logging, exceptions, service registry, tasks
    - integrations: External capabilities (browser, mail, mailbox, feeds, images)
    - ai: Planner and planner oracle
    - engine: Step model, executor, action handlers, run records
    - store: Persisted recurring jobs
    - autonomous: Scheduled sweeps and the periodic orchestrator
    - api: HTTP surface
"""

__version__ = "0.3.0"
