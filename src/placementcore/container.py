"""Dependency injection container for the placement engine."""

from __future__ import annotations

from dependency_injector import containers, providers

from .alumni import AlumniGroupDirectory
from .core import (
    AssessmentGrader,
    AttemptConfig,
    AttemptStateMachine,
    EligibilityEvaluator,
    NotificationConfig,
    NotificationDispatcher,
    RankingConfig,
    RankingEngine,
)
from .importer import StudentCsvLoader
from .interviews import InterviewScheduler
from .llm import FallbackCompletionClient, LLMConfig, QuizGenerator
from .repository import DocumentRepository
from .service import PlacementService


class PlacementContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    repository = providers.Singleton(
        DocumentRepository,
        path=config.state_path,
    )

    evaluator = providers.Singleton(EligibilityEvaluator)
    ranking_engine = providers.Singleton(RankingEngine)
    grader = providers.Singleton(AssessmentGrader)
    attempt_machine = providers.Singleton(AttemptStateMachine, grader=grader)

    dispatcher = providers.Singleton(NotificationDispatcher, repository=repository)
    scheduler = providers.Singleton(
        InterviewScheduler,
        repository=repository,
        dispatcher=dispatcher,
    )

    alumni = providers.Singleton(AlumniGroupDirectory, repository=repository)

    completion_client = providers.Singleton(FallbackCompletionClient.from_env)
    quiz_generator = providers.Singleton(QuizGenerator, client=completion_client)

    student_loader = providers.Factory(StudentCsvLoader)

    service = providers.Factory(
        PlacementService,
        repository=repository,
        evaluator=evaluator,
        ranking=ranking_engine,
        dispatcher=dispatcher,
        grader=grader,
        attempts=attempt_machine,
        scheduler=scheduler,
        alumni=alumni,
        quiz_generator=quiz_generator,
    )


def create_container(*, settings: dict | None = None) -> PlacementContainer:
    """Instantiate container with optional overrides."""

    container = PlacementContainer()

    if not settings:
        return container

    if settings.get("state_path"):
        container.config.override({"state_path": settings["state_path"]})

    if "ranking" in settings:
        ranking_config = RankingConfig(**settings["ranking"])
        container.ranking_engine.override(
            providers.Singleton(RankingEngine, config=ranking_config)
        )

    if "grading" in settings:
        attempt_config = AttemptConfig(**settings["grading"])
        container.attempt_machine.override(
            providers.Singleton(AttemptStateMachine, grader=container.grader, config=attempt_config)
        )

    if "notifications" in settings:
        notification_config = NotificationConfig(**settings["notifications"])
        container.dispatcher.override(
            providers.Singleton(
                NotificationDispatcher,
                repository=container.repository,
                config=notification_config,
            )
        )

    if "llm" in settings:
        llm_config = LLMConfig(**settings["llm"])
        container.completion_client.override(
            providers.Singleton(FallbackCompletionClient.from_env, config=llm_config)
        )

    return container
