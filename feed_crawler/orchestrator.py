"""Group orchestrator running target pipelines with bounded concurrency."""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Sequence

import structlog

from .config import GlobalConfig, StorageConfig, TargetConfig, TargetGroupConfig
from .engine import (
    ArticleRepository,
    CrawlingTarget,
    CrawlingTargetGroup,
    FetchFunc,
    GroupRunResult,
    JsonlArticleRepository,
    SelectorSourceParser,
    SourceParser,
    SQLiteArticleRepository,
    TargetFailure,
    TargetPipeline,
)
from .errors import ConfigurationError, GroupCrawlError, RetryExhaustedError, error_message
from .infra import SQLiteManager
from .logging_conf import LoggingExecutor

DEFAULT_MAX_CONCURRENCY = 5


def _default_task_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


class Orchestrator:
    """Central coordinator crawling every target of a group.

    At most ``max_concurrency`` target pipelines run at once (a group's own
    setting wins over the orchestrator default). A target whose retries are
    exhausted is recorded in :attr:`GroupRunResult.failures` and contributes
    nothing to the total; with ``isolate_target_failures=False`` the group call
    raises :class:`GroupCrawlError` instead, after every target has finished.
    """

    def __init__(
        self,
        groups: Sequence[CrawlingTargetGroup],
        repository: ArticleRepository,
        *,
        fetch: FetchFunc,
        custom_fetch: FetchFunc | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        stop_after_attempt: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float | None = 30.0,
        isolate_target_failures: bool = True,
        task_id: str | None = None,
        logger: structlog.BoundLogger | None = None,
        group_logger_factory: Callable[[str], structlog.BoundLogger] | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.groups = list(groups)
        self.repository = repository
        self.fetch = custom_fetch or fetch
        self.max_concurrency = max_concurrency
        self.stop_after_attempt = stop_after_attempt
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.isolate_target_failures = isolate_target_failures
        self.task_id = task_id or _default_task_id()
        self.logger = (logger or structlog.get_logger("feed_crawler")).bind(component="orchestrator")
        self.group_logger_factory = group_logger_factory

    @classmethod
    def from_config(
        cls,
        global_config: GlobalConfig,
        group_configs: Iterable[TargetGroupConfig],
        repository: ArticleRepository,
        *,
        fetch: FetchFunc,
        **kwargs,
    ) -> "Orchestrator":
        return cls(
            [TargetGroupFactory.build(config) for config in group_configs],
            repository,
            fetch=fetch,
            max_concurrency=global_config.max_concurrency,
            stop_after_attempt=global_config.chain.stop_after_attempt,
            retry_base_delay=global_config.chain.retry_base_delay,
            retry_max_delay=global_config.chain.retry_max_delay,
            isolate_target_failures=global_config.isolate_target_failures,
            **kwargs,
        )

    # ------------------------------------------------------------------
    def group_runners(self) -> dict[str, Callable[[], Awaitable[GroupRunResult]]]:
        """Map each group name to a zero-argument coroutine factory running it."""

        return {group.name: self._runner(group) for group in self.groups}

    def _runner(self, group: CrawlingTargetGroup) -> Callable[[], Awaitable[GroupRunResult]]:
        return lambda: self.run_group(group)

    def get_group(self, name: str) -> CrawlingTargetGroup:
        for group in self.groups:
            if group.name == name:
                return group
        raise KeyError(f"Unknown group: {name}")

    async def run_all(self) -> dict[str, GroupRunResult]:
        """Run every group concurrently; groups share no state."""

        runners = self.group_runners()
        outcomes = await asyncio.gather(
            *(runner() for runner in runners.values()), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return dict(zip(runners.keys(), outcomes))

    async def run_group(self, group: CrawlingTargetGroup) -> GroupRunResult:
        executor = LoggingExecutor(self._group_log(group.name), self.task_id)
        semaphore = asyncio.Semaphore(group.max_concurrency or self.max_concurrency)

        async def _run_target(target: CrawlingTarget) -> int:
            async with semaphore:
                pipeline = TargetPipeline(
                    group,
                    target,
                    fetch=self.fetch,
                    repository=self.repository,
                    executor=executor,
                    stop_after_attempt=self.stop_after_attempt,
                    retry_base_delay=self.retry_base_delay,
                    retry_max_delay=self.retry_max_delay,
                )
                return await pipeline.run()

        async def _run() -> GroupRunResult:
            outcomes = await asyncio.gather(
                *(_run_target(target) for target in group.targets), return_exceptions=True
            )
            result = GroupRunResult(group=group.name)
            for target, outcome in zip(group.targets, outcomes):
                if isinstance(outcome, Exception):
                    failure = self._to_failure(target, outcome)
                    result.failures.append(failure)
                    executor.error(
                        "crawl.target.failed",
                        target=failure.target,
                        attempts=failure.attempts,
                        error=failure.error,
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.total_saved += outcome
                    result.saved_by_target.append((target.describe(), outcome))
            if result.failures and not self.isolate_target_failures:
                raise GroupCrawlError(group.name, result.failures)
            return result

        return await executor.execute_with_logging(
            "crawl.group",
            _run,
            start_fields={"group": group.name, "targets": len(group.targets)},
            done_fields=lambda result: {
                "total_saved": result.total_saved,
                "failed_targets": len(result.failures),
            },
        )

    def _group_log(self, group_name: str) -> structlog.BoundLogger:
        if self.group_logger_factory is not None:
            return self.group_logger_factory(group_name)
        return self.logger.bind(group=group_name)

    @staticmethod
    def _to_failure(target: CrawlingTarget, error: Exception) -> TargetFailure:
        if isinstance(error, RetryExhaustedError):
            return TargetFailure(
                target=target.describe(),
                error=error_message(error.last_error),
                attempts=error.attempts,
                exception=error,
            )
        return TargetFailure(
            target=target.describe(), error=error_message(error), attempts=1, exception=error
        )


class TargetGroupFactory:
    """Turn validated group configuration into runtime targets."""

    @staticmethod
    def build(config: TargetGroupConfig) -> CrawlingTargetGroup:
        return CrawlingTargetGroup(
            name=config.name,
            targets=tuple(TargetGroupFactory.build_target(target) for target in config.targets),
            max_concurrency=config.max_concurrency,
        )

    @staticmethod
    def build_target(config: TargetConfig) -> CrawlingTarget:
        return CrawlingTarget(
            url=config.url, parser=TargetGroupFactory.build_parser(config), name=config.name
        )

    @staticmethod
    def build_parser(config: TargetConfig) -> SourceParser:
        if config.selectors is not None:
            return SelectorSourceParser(config.selectors, base_url=config.url)
        parser = config.parser
        if inspect.isclass(parser) and issubclass(parser, SourceParser):
            return parser()
        if isinstance(parser, SourceParser):
            return parser
        raise ConfigurationError(
            "parser must reference a SourceParser subclass", {"target": config.name or config.url}
        )


class RepositoryFactory:
    @staticmethod
    def build(
        storage_config: StorageConfig, base_dir: Path, manager: SQLiteManager | None = None
    ) -> ArticleRepository:
        path = storage_config.resolved_path(base_dir)
        if storage_config.backend == "sqlite":
            return SQLiteArticleRepository(manager or SQLiteManager(), path)
        if storage_config.backend == "jsonl":
            return JsonlArticleRepository(path)
        raise ValueError(f"Unsupported storage backend: {storage_config.backend}")


__all__ = ["DEFAULT_MAX_CONCURRENCY", "Orchestrator", "RepositoryFactory", "TargetGroupFactory"]
