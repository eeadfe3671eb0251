"""Integration tests for eksup.

These tests read from real AWS accounts and require:
- Valid AWS credentials
- Optionally AWS_TEST_ROLE_ARN and EKSUP_TEST_CLUSTER

Tests are marked with @pytest.mark.integration and can be run with:
    pytest tests/integration/ -m integration

To skip integration tests:
    pytest -m "not integration"
"""
