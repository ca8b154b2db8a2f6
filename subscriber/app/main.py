import asyncio
import signal
from typing import Any

from loguru import logger

from subscriber.app.application.replay import replay
from subscriber.app.application.subscription import subscribe
from subscriber.app.composition import create_subscriber_dependencies, create_subscription_options
from subscriber.app.config.settings import Settings
from subscriber.app.core import SERVICE_NAME
from subscriber.app.core.logging import configure_logging


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def _install_shutdown_handlers(shutdown: asyncio.Event) -> list[signal.Signals]:
    def request_shutdown() -> None:
        if not shutdown.is_set():
            _log("shutdown_signal")
            shutdown.set()

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            continue
        installed.append(sig)
    return installed


def _remove_shutdown_handlers(signals: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)


async def run_subscriber(settings: Settings | None = None) -> None:
    """Consume the configured queue until SIGINT/SIGTERM or a pipeline failure."""
    settings = settings or Settings()
    deps = create_subscriber_dependencies(settings)
    installed: list[signal.Signals] = []
    try:
        await deps.connect_queue()
        subscription = await subscribe(
            deps.queue_client,
            settings.queue_name,
            deps.serializer,
            deps.handler,
            create_subscription_options(settings),
        )

        shutdown = asyncio.Event()
        installed = _install_shutdown_handlers(shutdown)
        _log("subscriber_started", queue_url=subscription.queue_url)

        shutdown_task = asyncio.create_task(shutdown.wait())
        pipeline_task = asyncio.create_task(subscription.wait())
        try:
            await asyncio.wait(
                {shutdown_task, pipeline_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            shutdown_task.cancel()
            if not pipeline_task.done():
                pipeline_task.cancel()
                await subscription.close()
        # a pipeline that stopped by itself re-raises its failure here
        if pipeline_task.done() and not pipeline_task.cancelled():
            pipeline_task.result()
    finally:
        _remove_shutdown_handlers(installed)
        await deps.close()
        _log("subscriber_stopped")


async def run_replay(settings: Settings | None = None) -> int:
    """Replay REPLAY_BUCKET/REPLAY_PREFIX through the configured handler."""
    settings = settings or Settings()
    if not settings.replay_bucket:
        raise ValueError("REPLAY_BUCKET is required for replay")
    deps = create_subscriber_dependencies(settings)
    try:
        await deps.connect_archive()
        return await replay(
            deps.archive_client,
            deps.serializer,
            deps.handler,
            settings.replay_bucket,
            settings.replay_prefix,
        )
    finally:
        await deps.close()


def _run(coro_factory: Any) -> None:
    settings = Settings()
    configure_logging(settings.log_level, json_logs=settings.log_json)
    try:
        asyncio.run(coro_factory(settings))
    except KeyboardInterrupt:
        _log("subscriber_interrupted")
    except Exception as e:
        logger.exception("subscriber failed: {}", e)
        raise


def main() -> None:
    _run(run_subscriber)


def replay_main() -> None:
    _run(run_replay)


if __name__ == "__main__":
    main()
