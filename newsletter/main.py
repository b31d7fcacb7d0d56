"""
Newsletter Service - Main Application
FastAPI entry point; runs the HTTP server and the delivery worker side by side
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from sqlalchemy.orm import sessionmaker
from starlette.middleware.sessions import SessionMiddleware
import structlog
import uvicorn

from newsletter import __version__
from newsletter.concurrency import BlockingExecutor
from newsletter.config import Settings
from newsletter.database import create_session_factory
from newsletter.errors import (
    InvalidCredentials,
    NewsletterError,
    UnexpectedError,
    ValidationError,
    format_error_chain,
)
from newsletter.middleware import AdminIpAllowlistMiddleware, CorrelationIdMiddleware, LoginRequired
from newsletter.routers import admin_router, health_router, login_router, subscriptions_router
from newsletter.services.authentication import CredentialVerifier
from newsletter.services.delivery_queue import SqlDeliveryQueue
from newsletter.services.email_client import EmailClient, EmailSender
from newsletter.services.idempotency import IdempotencyService, SqlIdempotencyStore
from newsletter.services.monitoring import setup_logging
from newsletter.services.publishing import NewsletterPublisher
from newsletter.services.subscription import SubscriptionService
from newsletter.services.subscription_store import SqlSubscriptionStore
from newsletter.worker import DeliveryWorker

logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker] = None,
    email_sender: Optional[EmailSender] = None,
    executor: Optional[BlockingExecutor] = None,
    start_worker: bool = False,
) -> FastAPI:
    """
    Build the application and wire its services into app.state.

    Args:
        settings: Configuration (module-level settings when omitted)
        session_factory: Shared sessionmaker (built from settings when omitted)
        email_sender: Email transport (EmailClient from settings when omitted,
            closed on shutdown; a passed-in sender is closed by its owner)
        executor: Blocking executor for database and hashing work
        start_worker: Run a DeliveryWorker for the lifetime of the app
    """
    if settings is None:
        from newsletter.config import settings

    session_factory = session_factory or create_session_factory(settings)
    owns_email_sender = email_sender is None
    email_sender = email_sender or EmailClient.from_settings(settings)
    executor = executor or BlockingExecutor(settings.blocking_pool_size)
    delivery_queue = SqlDeliveryQueue()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("startup", environment=settings.environment, version=__version__)
        worker_task = None
        if start_worker:
            worker_task = asyncio.create_task(app.state.worker.run_until_stopped())
        try:
            yield
        finally:
            if worker_task is not None:
                worker_task.cancel()
                try:
                    await worker_task
                except asyncio.CancelledError:
                    pass
            if owns_email_sender:
                email_sender.close()
            logger.info("shutdown")

    app = FastAPI(
        title="Newsletter Service",
        description="Double opt-in newsletter subscriptions with idempotent issue delivery",
        version=__version__,
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.executor = executor
    app.state.email_sender = email_sender
    app.state.delivery_queue = delivery_queue
    app.state.subscription_service = SubscriptionService(
        store=SqlSubscriptionStore(session_factory),
        email_sender=email_sender,
        executor=executor,
        base_url=settings.base_url,
    )
    app.state.credential_verifier = CredentialVerifier(session_factory, executor)
    app.state.publisher = NewsletterPublisher(
        session_factory=session_factory,
        delivery_queue=delivery_queue,
        idempotency=IdempotencyService(
            store=SqlIdempotencyStore(session_factory),
            executor=executor,
            poll_interval=settings.idempotency_poll_interval,
            wait_timeout=settings.idempotency_wait_timeout,
        ),
        executor=executor,
    )
    app.state.worker = DeliveryWorker(
        session_factory=session_factory,
        delivery_queue=delivery_queue,
        email_sender=email_sender,
        executor=executor,
        empty_queue_backoff=settings.worker_empty_queue_backoff,
        error_backoff=settings.worker_error_backoff,
    )

    # Last added runs first: correlation id, then session, then allowlist
    app.add_middleware(AdminIpAllowlistMiddleware, allowed_ips=settings.admin_allowed_ips)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
        https_only=settings.environment == "production",
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(subscriptions_router)
    app.include_router(login_router)
    app.include_router(admin_router)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map the error taxonomy onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> Response:
        logger.info("request_rejected", path=request.url.path, error_message=str(exc))
        return PlainTextResponse(str(exc), status_code=400)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        logger.info("request_malformed", path=request.url.path, errors=str(exc.errors()))
        return PlainTextResponse("Missing or malformed request fields.", status_code=400)

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired) -> Response:
        return RedirectResponse("/login", status_code=303)

    @app.exception_handler(InvalidCredentials)
    async def invalid_credentials_handler(request: Request, exc: InvalidCredentials) -> Response:
        return PlainTextResponse(str(exc), status_code=401)

    @app.exception_handler(NewsletterError)
    async def unexpected_error_handler(request: Request, exc: NewsletterError) -> Response:
        # UnexpectedError and anything else unclassified: details stay in the logs
        logger.error(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error_message=str(exc),
            error_cause_chain=format_error_chain(exc),
            expected=not isinstance(exc, UnexpectedError),
        )
        return PlainTextResponse("Internal Server Error", status_code=500)


async def serve(settings: Settings) -> None:
    """
    Run the HTTP server and the delivery worker until either one exits.
    """
    email_sender = EmailClient.from_settings(settings)
    app = create_app(settings, email_sender=email_sender)
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None)
    )

    server_task = asyncio.create_task(server.serve(), name="api")
    worker_task = asyncio.create_task(app.state.worker.run_until_stopped(), name="delivery_worker")

    done, pending = await asyncio.wait({server_task, worker_task}, return_when=asyncio.FIRST_COMPLETED)
    for task in done:
        if task.exception() is not None:
            logger.error(
                "task_failed",
                task=task.get_name(),
                error_message=str(task.exception()),
                error_cause_chain=format_error_chain(task.exception()),
            )
        else:
            logger.info("task_exited", task=task.get_name())

    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    email_sender.close()
    app.state.executor.shutdown(wait=False)


def main() -> None:
    from newsletter.config import settings

    setup_logging(settings.log_level)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
