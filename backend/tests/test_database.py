import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from criblink.core.database import DatabaseClient, SQLAlchemyQueryExecutor


def mock_engine(rows):
    conn = AsyncMock()
    conn.execute.return_value = [SimpleNamespace(_mapping=row) for row in rows]
    engine = MagicMock()
    engine.connect.return_value.__aenter__.return_value = conn
    engine.connect.return_value.__aexit__.return_value = False
    engine.dispose = AsyncMock()
    return engine, conn


class TestSQLAlchemyQueryExecutor:
    """Test the engine-backed executor"""

    @pytest.mark.asyncio
    async def test_fetch_all_returns_dicts(self):
        engine, conn = mock_engine([{"count": 3}])
        executor = SQLAlchemyQueryExecutor(engine)

        rows = await executor.fetch_all("SELECT COUNT(*) AS count FROM property_listings pl WHERE pl.status ILIKE :p1",
                                        {"p1": "available"})

        assert rows == [{"count": 3}]
        statement, params = conn.execute.call_args[0]
        assert statement.text.endswith("pl.status ILIKE :p1")
        assert params == {"p1": "available"}

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        engine, conn = mock_engine([])
        conn.execute.side_effect = RuntimeError("syntax error")

        with pytest.raises(RuntimeError):
            await SQLAlchemyQueryExecutor(engine).fetch_all("SELECT 1", {})


class TestDatabaseClient:
    """Test engine lifecycle"""

    def test_executor_requires_connection(self):
        with pytest.raises(RuntimeError):
            DatabaseClient().get_executor()

    @pytest.mark.asyncio
    async def test_health_check_without_engine(self):
        assert await DatabaseClient().health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_and_disconnect(self):
        engine, _ = mock_engine([])
        client = DatabaseClient()
        client.engine = engine

        assert await client.health_check() is True
        assert isinstance(client.get_executor(), SQLAlchemyQueryExecutor)

        await client.disconnect()
        engine.dispose.assert_awaited_once()
        assert client.engine is None

    def test_pool_status(self):
        engine, _ = mock_engine([])
        engine.pool.size.return_value = 5
        engine.pool.checkedin.return_value = 4
        engine.pool.checkedout.return_value = 1
        engine.pool.overflow.return_value = -4
        client = DatabaseClient()

        assert client.pool_status() is None
        client.engine = engine
        assert client.pool_status() == {"size": 5, "checked_in": 4, "checked_out": 1, "overflow": -4}

    @pytest.mark.asyncio
    async def test_status_when_query_fails(self):
        engine, conn = mock_engine([])
        conn.execute.side_effect = OSError("connection refused")
        client = DatabaseClient()
        client.engine = engine

        status = await client.status()

        assert status["status"] == "unhealthy"
        assert status["pool"] is not None

    @pytest.mark.asyncio
    async def test_status_before_connect(self):
        assert await DatabaseClient().status() == {"status": "disconnected", "pool": None}
