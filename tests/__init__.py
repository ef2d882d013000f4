"""AutoDirector Test Suite.

Test organization mirrors autodirector/ structure:
    tests/
    ├── conftest.py          # Shared fixtures (fake browser, mocked capabilities)
    ├── test_core/           # Config, logging, exceptions, registry, tasks
    ├── test_engine/         # Steps, links, context, runs, handlers, executor
    ├── test_ai/             # Planner and oracle
    ├── test_integrations/   # Mail, mailbox, web, feeds, images adapters
    ├── test_store/          # Persisted job collections
    ├── test_autonomous/     # Sweeps and the orchestrator loop
    └── test_api/            # HTTP surface

Markers:
    - @pytest.mark.slow: Tests taking > 1 second
    - @pytest.mark.integration: Tests requiring external services
"""
