"""
stencilforge test suite
=======================

Test Modules
------------
- test_context.py: layered context and context input files
- test_helpers.py: helper registry and built-in helpers
- test_parser.py: directive parsing
- test_evaluator.py: rendering
- test_store.py: template, partial and metadata loading
- test_paths.py: output path resolution
- test_conflicts.py: conflict decisions and backups
- test_validation.py: post-write checks
- test_engine.py: engine wiring and feature switches
- test_hooks.py: lifecycle hooks
- test_pipeline.py: generation runs, rollback and stages
- test_models.py: configuration and result models
- test_cli.py: command-line interface

Running Tests
-------------
    # Run all tests
    pytest

    # Skip end-to-end pipeline tests
    pytest -m "not integration"

    # Run specific test class
    pytest tests/test_evaluator.py::TestConditionals
"""
