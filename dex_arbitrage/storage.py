"""
SQLite persistence for detected arbitrage opportunities.

Each opportunity is written as a single row in one transaction, so a row is
either fully recorded or not recorded at all.
"""

import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from .exceptions import PersistenceError
from .types import Opportunity
from .utils import get_logger

logger = get_logger(__name__)


def resolve_db_path(database_url: str) -> str:
    """Accept plain paths as well as sqlite:// style URLs."""
    for prefix in ("sqlite:///", "sqlite://", "sqlite:"):
        if database_url.startswith(prefix):
            return database_url[len(prefix) :]
    return database_url


class OpportunityStore:
    """
    aiosqlite-backed opportunity sink.

    Usage:
        async with OpportunityStore("arbitrage.db") as store:
            await store.record_opportunity(opportunity)
    """

    def __init__(self, database_url: str = "arbitrage.db"):
        self.db_path = resolve_db_path(database_url)
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self):
        """Open the database (creating it if missing) and ensure the schema exists."""
        if self._conn is not None:
            return

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                if not Path(self.db_path).exists():
                    logger.info(f"Creating database {self.db_path}")

            self._conn = await aiosqlite.connect(self.db_path)
            await self._init_database_schema(self._conn)
        except (aiosqlite.Error, OSError) as e:
            if self._conn is not None:
                await self._conn.close()
                self._conn = None
            raise PersistenceError(
                f"Failed to initialize database {self.db_path}: {e}",
                details={"db_path": self.db_path},
            ) from e

    async def _init_database_schema(self, conn: aiosqlite.Connection):
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS arbitrage_opportunities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                buy_dex TEXT NOT NULL,
                sell_dex TEXT NOT NULL,
                token_in TEXT NOT NULL,
                token_out TEXT NOT NULL,
                amount_in REAL NOT NULL,
                amount_out REAL NOT NULL,
                simulated_profit_usd REAL NOT NULL,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """
        )
        await conn.commit()

    async def record_opportunity(self, opportunity: Opportunity) -> None:
        """
        Insert one opportunity row.

        Raises:
            PersistenceError: If the store is not initialized or the write fails
        """
        if self._conn is None:
            raise PersistenceError(
                "OpportunityStore is not initialized", details={"db_path": self.db_path}
            )

        async with self._lock:
            try:
                await self._conn.execute(
                    """
                    INSERT INTO arbitrage_opportunities (
                        buy_dex, sell_dex, token_in, token_out,
                        amount_in, amount_out, simulated_profit_usd
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        opportunity.buy_exchange,
                        opportunity.sell_exchange,
                        opportunity.buy_token_symbol,
                        opportunity.sell_token_symbol,
                        float(opportunity.amount_in),
                        float(opportunity.amount_out),
                        float(opportunity.net_profit),
                    ),
                )
                await self._conn.commit()
            except aiosqlite.Error as e:
                await self._conn.rollback()
                raise PersistenceError(
                    f"Failed to record opportunity {opportunity.buy_exchange} -> "
                    f"{opportunity.sell_exchange} ({opportunity.path}): {e}",
                    details={"db_path": self.db_path},
                ) from e

    async def fetch_recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Return the most recently recorded opportunities, newest first."""
        if self._conn is None:
            raise PersistenceError("OpportunityStore is not initialized")

        async with self._conn.execute(
            """
            SELECT buy_dex, sell_dex, token_in, token_out,
                   amount_in, amount_out, simulated_profit_usd, timestamp
            FROM arbitrage_opportunities
            ORDER BY id DESC
            LIMIT ?
        """,
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            {
                "buy_dex": row[0],
                "sell_dex": row[1],
                "token_in": row[2],
                "token_out": row[3],
                "amount_in": Decimal(str(row[4])),
                "amount_out": Decimal(str(row[5])),
                "simulated_profit_usd": Decimal(str(row[6])),
                "timestamp": row[7],
            }
            for row in rows
        ]

    async def count(self) -> int:
        if self._conn is None:
            raise PersistenceError("OpportunityStore is not initialized")

        async with self._conn.execute(
            "SELECT COUNT(*) FROM arbitrage_opportunities"
        ) as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def close(self):
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "OpportunityStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
