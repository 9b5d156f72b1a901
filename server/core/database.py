"""Async database service with SQLModel and SQLAlchemy 2.0."""

import uuid
from typing import Dict, Any, List, Optional
from sqlmodel import SQLModel, select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager

from core.config import Settings
from core.logging import get_logger
from models.database import Workflow, Execution, utc_now
from models.auth import User
from models.workflow import WorkflowDefinition

logger = get_logger(__name__)


class Database:
    """Async database service with SQLModel.

    Query helpers log and re-raise storage failures so routes can turn them
    into error responses; lookups of missing rows return None.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            engine_kwargs: Dict[str, Any] = {"echo": self.settings.database_echo}
            if not self.settings.is_sqlite:
                engine_kwargs["pool_size"] = self.settings.database_pool_size
                engine_kwargs["max_overflow"] = self.settings.database_max_overflow

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ============================================================================
    # Workflows
    # ============================================================================

    async def save_workflow(self, definition: WorkflowDefinition) -> Workflow:
        """Insert a workflow, or replace the stored one with the same id."""
        workflow_id = definition.id or str(uuid.uuid4())
        fields = definition.storage_dict()
        try:
            async with self.get_session() as session:
                existing = await session.get(Workflow, workflow_id)

                if existing:
                    for key, value in fields.items():
                        setattr(existing, key, value)
                    existing.updated_at = utc_now()
                else:
                    existing = Workflow(id=workflow_id, **fields)
                    session.add(existing)

                await session.commit()
                await session.refresh(existing)
                return existing

        except Exception as e:
            logger.error("Failed to save workflow", workflow_id=workflow_id, error=str(e))
            raise

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Get workflow by ID."""
        try:
            async with self.get_session() as session:
                return await session.get(Workflow, workflow_id)

        except Exception as e:
            logger.error("Failed to get workflow", workflow_id=workflow_id, error=str(e))
            raise

    async def list_workflows(self, active_only: bool = False) -> List[Workflow]:
        """Get all workflows, most recently updated first."""
        try:
            async with self.get_session() as session:
                stmt = select(Workflow)
                if active_only:
                    stmt = stmt.where(Workflow.active == True)  # noqa: E712
                stmt = stmt.order_by(Workflow.updated_at.desc())
                result = await session.execute(stmt)
                return list(result.scalars().all())

        except Exception as e:
            logger.error("Failed to list workflows", error=str(e))
            raise

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete workflow and its execution history. Returns False if missing."""
        try:
            async with self.get_session() as session:
                workflow = await session.get(Workflow, workflow_id)
                if not workflow:
                    return False

                result = await session.execute(
                    select(Execution).where(Execution.workflow_id == workflow_id)
                )
                for execution in result.scalars().all():
                    await session.delete(execution)

                await session.delete(workflow)
                await session.commit()
                return True

        except Exception as e:
            logger.error("Failed to delete workflow", workflow_id=workflow_id, error=str(e))
            raise

    async def get_workflows_count(self) -> Dict[str, int]:
        """Count stored workflows."""
        try:
            async with self.get_session() as session:
                result = await session.execute(select(func.count()).select_from(Workflow))
                return {"total": result.scalar_one() or 0}

        except Exception as e:
            logger.error("Failed to count workflows", error=str(e))
            raise

    # ============================================================================
    # Executions
    # ============================================================================

    async def save_execution(self, execution: Execution) -> Execution:
        """Record a finished workflow run."""
        try:
            async with self.get_session() as session:
                session.add(execution)
                await session.commit()
                await session.refresh(execution)
                return execution

        except Exception as e:
            logger.error("Failed to save execution", execution_id=execution.id, error=str(e))
            raise

    async def list_executions(self, workflow_id: str, limit: int = 50) -> List[Execution]:
        """Get execution history for a workflow, newest first."""
        try:
            async with self.get_session() as session:
                stmt = (
                    select(Execution)
                    .where(Execution.workflow_id == workflow_id)
                    .order_by(Execution.created_at.desc())
                    .limit(limit)
                )
                result = await session.execute(stmt)
                return list(result.scalars().all())

        except Exception as e:
            logger.error("Failed to list executions", workflow_id=workflow_id, error=str(e))
            raise

    # ============================================================================
    # Users
    # ============================================================================

    async def create_user(self, user: User) -> User:
        async with self.get_session() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self.get_session() as session:
            return await session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self.get_session() as session:
            result = await session.execute(
                select(User).where(User.email == email.lower().strip())
            )
            return result.scalars().first()

    async def list_users(self) -> List[User]:
        """Get all users, newest first."""
        async with self.get_session() as session:
            result = await session.execute(select(User).order_by(User.created_at.desc()))
            return list(result.scalars().all())

    async def count_users(self) -> int:
        async with self.get_session() as session:
            result = await session.execute(select(func.count()).select_from(User))
            return result.scalar_one() or 0

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Apply a partial update. Returns None if the user does not exist."""
        async with self.get_session() as session:
            user = await session.get(User, user_id)
            if not user:
                return None
            for key, value in fields.items():
                setattr(user, key, value)
            await session.commit()
            await session.refresh(user)
            return user

    async def delete_user(self, user_id: str) -> bool:
        async with self.get_session() as session:
            user = await session.get(User, user_id)
            if not user:
                return False
            await session.delete(user)
            await session.commit()
            return True
