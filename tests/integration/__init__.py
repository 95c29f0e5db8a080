"""
Integration Tests for the Trade Runner
======================================

Integration tests verify that multiple components work together correctly:
- Orchestrator wiring on top of the scheduler
- Feature toggles across cycles
- Live-mode pipelines against mock collaborators
- The CLI entry point

Running Integration Tests:
    pytest tests/integration/ -m integration
    pytest tests/integration/ -v --tb=long

Characteristics:
- Slower than unit tests (real timers with short intervals)
- Still avoid external APIs (use mocks)

All tests in this directory are automatically marked with @pytest.mark.integration
"""
