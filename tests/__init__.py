"""
Trade runner tests.

    tests/
        conftest.py     fixtures, unit/integration markers
        utils.py        TaskProbe, make_task, EventRecorder, run()
        mocks/          in-memory collaborators and a settable clock
        unit/           oracle, types, scheduler, errors, logging
        integration/    orchestrator end to end, CLI

Run ``pytest`` for everything, ``pytest -m unit`` for the fast subset.
"""
