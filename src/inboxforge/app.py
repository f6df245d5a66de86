"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from inboxforge.ai import AiProvider, AiProviderFactory
from inboxforge.classifier import ClassificationService
from inboxforge.config import AppConfig
from inboxforge.corrections import CorrectionAnalyzer, CorrectionThresholds
from inboxforge.services import (
    ConfigurationService,
    DeploymentService,
    LearningService,
    ProvisioningService,
    TriageService,
)
from inboxforge.storage.sqlite_store import SqliteStore
from inboxforge.voice import VoiceProfileRefiner


@dataclass(frozen=True)
class AppServices:
    """Summary: Bundle of core services for InboxForge.

    Importance: Simplifies passing dependencies to UI or API layers.
    Alternatives: Use a dependency injection container.
    """

    configurations: ConfigurationService
    deployments: DeploymentService
    provisioning: ProvisioningService
    learning: LearningService
    triage: TriageService
    store: SqliteStore
    config: AppConfig


def build_services(config: AppConfig, ai_provider: AiProvider | None = None) -> AppServices:
    """Summary: Build core services from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Instantiate services directly within the CLI entrypoint.
    """

    store = SqliteStore(config.db_path)
    store.initialize()
    provider = ai_provider or AiProviderFactory(config).build()
    configurations = ConfigurationService(store=store)
    deployments = DeploymentService(
        store=store,
        configurations=configurations,
        min_voice_confidence=config.min_voice_confidence,
    )
    thresholds = CorrectionThresholds(
        minor=config.similarity_minor,
        moderate=config.similarity_moderate,
        major=config.similarity_major,
    )
    learning = LearningService(
        store=store,
        analyzer=CorrectionAnalyzer(store, thresholds),
        refiner=VoiceProfileRefiner(
            store,
            refinement_threshold=config.refinement_threshold,
            lock_timeout_seconds=config.learning_lock_timeout_seconds,
        ),
    )
    return AppServices(
        configurations=configurations,
        deployments=deployments,
        provisioning=ProvisioningService(store=store, configurations=configurations, config=config),
        learning=learning,
        triage=TriageService(
            configurations=configurations,
            deployments=deployments,
            classifier=ClassificationService(provider),
        ),
        store=store,
        config=config,
    )
