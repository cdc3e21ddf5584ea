"""
Integration tests package.

Integration tests run the SQL store and search history against a real
PostgreSQL database with the pgvector extension. They require:
- TEST_DATABASE_URL pointing at a disposable database
- The --run-integration flag

To run integration tests:
    TEST_DATABASE_URL=postgresql+asyncpg://... pytest tests/integration/ -v --run-integration

To skip integration tests (default):
    pytest tests/ -v
"""
