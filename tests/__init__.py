"""
Guild Roster Test Suite
=======================

Test Organization
-----------------
- tests/unit/          : Fast tests of core helpers (validator, event bus, config, errors)
- tests/scenarios/     : Full service commands against a temporary SQLite database
- tests/integration/   : Concurrency tests against PostgreSQL via testcontainers

Running
-------
- `pytest`                   : unit + scenario suites (integration skips without Docker)
- `pytest -m integration`    : PostgreSQL suite only
- `pytest -m "not database"` : no database at all
"""
