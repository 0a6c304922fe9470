"""Database connection and table definitions."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    text,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from app.config import get_settings

Base = declarative_base()


class VaultTable(Base):
    """One row per vault: configuration and accounting fields.

    u64 counters are stored as NUMERIC(20, 0) since they do not fit BIGINT.
    """

    __tablename__ = "vaults"

    vault_key = Column(String(64), primary_key=True)
    admin = Column(String(64), nullable=False)

    current_bin_lower = Column(Integer, nullable=False, default=0)
    current_bin_upper = Column(Integer, nullable=False, default=0)
    pending_bin_lower = Column(Integer, nullable=False, default=0)
    pending_bin_upper = Column(Integer, nullable=False, default=0)

    last_rebalance_time = Column(BigInteger, nullable=False, default=0)
    last_fee_harvest_time = Column(BigInteger, nullable=False, default=0)

    total_fees_earned = Column(Numeric(20, 0), nullable=False, default=0)
    max_fee_amount = Column(Numeric(20, 0), nullable=False, default=0)
    fee_token_account = Column(String(64), nullable=False, default="")

    rebalance_threshold = Column(SmallInteger, nullable=False)
    min_rebalance_delay = Column(BigInteger, nullable=False)

    last_price = Column(Float, nullable=False, default=0.0)
    price_update_time = Column(BigInteger, nullable=False, default=0)

    bump = Column(SmallInteger, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))
    updated_at = Column(DateTime(timezone=True), server_default=text("NOW()"), onupdate=text("NOW()"))

    __table_args__ = (
        Index("idx_vaults_admin", "admin"),
    )


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        # Vault operations are serialized per vault, so a small pool suffices
        self.engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,    # Validate before use
            pool_recycle=3600,     # Recycle every hour
            pool_timeout=30,       # Wait max 30s for connection
            connect_args={
                "timeout": 10,
                "command_timeout": 30,
            },
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    """Initialize the database and create tables."""
    db = get_database()
    await db.create_tables()
    return db
