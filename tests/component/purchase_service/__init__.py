"""
Purchase Service Component Tests

Component tests for purchase_service: the coordinator with in-memory stores,
the repositories against a mocked PostgreSQL client, the account client and
the HTTP layer.

Structure:
- mocks.py: In-memory stores and resolvers with fault injection
- conftest.py: Coordinator fixtures
- test_settlement_outcomes.py: Outcome taxonomy and idempotent replay
- test_settlement_concurrency.py: Concurrent buyers never oversell
- test_settlement_compensation.py: Rollback, timeouts and reconciliation
- test_purchase_repositories.py: SQL-level repository behavior
- test_account_client.py: Buyer resolution over HTTP
- test_purchase_api.py: Status codes and request validation
"""
