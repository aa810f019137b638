"""
Scheduled jobs, run by cron as `flask jobs <name>`.

Each job module exposes a `run(...)` function returning a summary dict so it
can be called from tests without going through the CLI.
"""
