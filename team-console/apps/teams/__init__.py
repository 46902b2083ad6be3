"""
Team composition service.

Teams group users of one company under a single owner. All changes go
through `apps.teams.services.team_orchestrator`, which enforces the
composition rules inside one transaction per operation.
"""
