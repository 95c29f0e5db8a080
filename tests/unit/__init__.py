"""
Unit Tests for the Trade Runner
===============================

Unit tests are:
- Fast (< 1 second each)
- Isolated (no broker, no wall clock)
- Deterministic (same input = same output)
- Independent (can run in any order)

Test Categories:
    - test_market_hours.py - Market status, next open/close, grace periods
    - test_task_scheduler.py - Cycle execution, priorities, circuit breaker, events
    - test_types.py - Config parsing and validation
    - test_task_specs.py - Built-in task registry
    - test_errors.py - Exception hierarchy and error context
    - test_logger.py - Logging setup
    - test_timezone.py - Timezone helpers and package exports

Running Unit Tests:
    pytest tests/unit/ -m unit
    pytest tests/unit/ -v --tb=short
    pytest tests/unit/test_task_scheduler.py -k "priority"

All tests in this directory are automatically marked with @pytest.mark.unit
"""
