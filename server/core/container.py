"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.broker import RedisBroker
from services.ai import AIService
from services.execution import JobQueue, WorkflowExecutor, RetryWorker
from services.user_auth import UserAuthService
from services.users import UserService
from services.workflow import WorkflowService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Infrastructure
    database = providers.Singleton(
        Database,
        settings=settings
    )

    broker = providers.Singleton(
        RedisBroker,
        settings=settings
    )

    job_queue = providers.Singleton(
        JobQueue,
        broker=broker,
        settings=settings
    )

    # Services
    user_auth_service = providers.Factory(
        UserAuthService,
        database=database,
        settings=settings
    )

    user_service = providers.Factory(
        UserService,
        database=database
    )

    ai_service = providers.Singleton(
        AIService,
        settings=settings
    )

    workflow_executor = providers.Singleton(
        WorkflowExecutor,
        ai_service=ai_service,
        queue=job_queue,
        settings=settings
    )

    workflow_service = providers.Singleton(
        WorkflowService,
        database=database,
        executor=workflow_executor,
        queue=job_queue
    )

    retry_worker = providers.Singleton(
        RetryWorker,
        queue=job_queue,
        executor=workflow_executor,
        settings=settings,
        run_workflow=workflow_service.provided.execute_workflow
    )


# Global container instance
container = Container()
