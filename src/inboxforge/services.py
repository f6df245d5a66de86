"""Summary: Core application services for InboxForge.

Importance: Orchestrates configuration, prompt deployment, folder provisioning, and learning flows.
Alternatives: Build a full service layer with dependency injection framework.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from inboxforge.business_config import resolve_configuration
from inboxforge.classifier import ClassificationService
from inboxforge.config import AppConfig
from inboxforge.corrections import CorrectionAnalyzer
from inboxforge.errors import ConfigurationError
from inboxforge.mailbox import GmailMailboxClient, MailboxClient, OutlookMailboxClient
from inboxforge.models import (
    BusinessConfiguration,
    Classification,
    CompiledPromptArtifact,
    CorrectionContext,
    DraftCorrectionRecord,
    FolderEntry,
    IncomingEmail,
    LearningMetrics,
    LearningStatus,
    ProviderKind,
    ReconciliationResult,
    SendEvent,
    TaxonomyNode,
    VoiceProfile,
)
from inboxforge.prompt_compiler import compile_prompt
from inboxforge.reconciler import FolderReconciler
from inboxforge.storage.sqlite_store import SqliteStore
from inboxforge.taxonomy import build_taxonomy
from inboxforge.voice import VoiceProfileRefiner, build_baseline_profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigurationService:
    """Summary: Stores and resolves business configurations.

    Importance: Rejects invalid configurations before they are persisted.
    Alternatives: Store raw onboarding payloads and validate at compile time.
    """

    store: SqliteStore

    def save(self, business_id: str, document: dict[str, Any]) -> BusinessConfiguration:
        """Summary: Resolve and persist a configuration document.

        Importance: Unknown roles and empty industries fail here, not at deployment.
        Alternatives: Persist first and report problems later.
        """

        fields = {key: value for key, value in document.items() if key != "businessId"}
        config = resolve_configuration({**fields, "business_id": business_id})
        self.store.save_business_config(business_id, fields)
        logger.info("Saved configuration for business %s.", business_id)
        return config

    def load(self, business_id: str) -> BusinessConfiguration | None:
        """Summary: Load and resolve a stored configuration."""

        document = self.store.get_business_config(business_id)
        if document is None:
            return None
        return resolve_configuration(document)

    def taxonomy(self, business_id: str) -> list[TaxonomyNode] | None:
        """Summary: Build the taxonomy for a stored configuration."""

        config = self.load(business_id)
        if config is None:
            return None
        return build_taxonomy(config)


@dataclass(frozen=True)
class DeploymentService:
    """Summary: Compiles and stores classifier prompts.

    Importance: Each deployment fully replaces the previous prompt.
    Alternatives: Patch deployed prompts in place.
    """

    store: SqliteStore
    configurations: ConfigurationService
    min_voice_confidence: float

    def deploy(self, business_id: str) -> CompiledPromptArtifact | None:
        """Summary: Compile the prompt for a business and store it.

        Importance: The current voice profile is folded in when it is confident enough.
        Alternatives: Compile on every classification request.
        """

        config = self.configurations.load(business_id)
        if config is None:
            return None
        profile = self.store.get_voice_profile(business_id)
        artifact = compile_prompt(config, profile, self.min_voice_confidence)
        self.store.save_prompt_artifact(artifact)
        logger.info("Deployed prompt %s for business %s.", artifact.version, business_id)
        return artifact

    def current(self, business_id: str) -> CompiledPromptArtifact | None:
        """Summary: Return the deployed prompt artifact, if any."""

        return self.store.get_prompt_artifact(business_id)


@dataclass(frozen=True)
class ProvisioningService:
    """Summary: Reconciles mailbox folders for a business.

    Importance: Callers supply an already-valid provider token.
    Alternatives: Manage OAuth tokens inside the service.
    """

    store: SqliteStore
    configurations: ConfigurationService
    config: AppConfig

    def build_mailbox(self, provider_kind: ProviderKind, access_token: str) -> MailboxClient:
        """Summary: Construct the mailbox client for a provider.

        Importance: Applies configured API roots, timeouts, and retry limits.
        Alternatives: Let callers construct clients.
        """

        if not access_token:
            raise ConfigurationError("An access token is required to reconcile folders")
        if provider_kind == ProviderKind.OUTLOOK:
            return OutlookMailboxClient(
                access_token,
                base_url=self.config.graph_api_base,
                timeout=self.config.http_timeout_seconds,
                max_attempts=self.config.http_max_attempts,
            )
        return GmailMailboxClient(
            access_token,
            base_url=self.config.gmail_api_base,
            timeout=self.config.http_timeout_seconds,
            max_attempts=self.config.http_max_attempts,
        )

    def reconcile(
        self, business_id: str, mailbox: MailboxClient
    ) -> ReconciliationResult | None:
        """Summary: Reconcile a business's taxonomy with its mailbox.

        Importance: Safe to run repeatedly, for example after users delete folders.
        Alternatives: Provision folders only at onboarding.
        """

        taxonomy = self.configurations.taxonomy(business_id)
        if taxonomy is None:
            return None
        return FolderReconciler(self.store, business_id).reconcile(taxonomy, mailbox)

    def folders(
        self,
        business_id: str,
        provider_kind: ProviderKind | None = None,
        include_deleted: bool = False,
    ) -> list[FolderEntry]:
        """Summary: List recorded folder entries for one or both providers."""

        kinds = [provider_kind] if provider_kind else list(ProviderKind)
        entries: list[FolderEntry] = []
        for kind in kinds:
            entries.extend(self.store.list_folder_entries(business_id, kind, include_deleted))
        return entries


@dataclass(frozen=True)
class SendOutcome:
    """Summary: Result of processing one send event.

    Importance: Tells callers whether a correction was stored and a refinement ran.
    Alternatives: Return only the correction record.
    """

    correction: DraftCorrectionRecord | None
    profile: VoiceProfile | None
    skipped: bool = False


@dataclass(frozen=True)
class LearningService:
    """Summary: Runs the correction and voice refinement loop.

    Importance: Keeps analysis and refinement decoupled behind one entry point.
    Alternatives: Call the analyzer and refiner from each entrypoint.
    """

    store: SqliteStore
    analyzer: CorrectionAnalyzer
    refiner: VoiceProfileRefiner

    def record_send_event(self, event: SendEvent) -> SendOutcome:
        """Summary: Analyze a sent reply and refine the profile when a batch is ready.

        Importance: Replies sent without an AI draft carry no learning signal.
        Alternatives: Treat every send as a correction.
        """

        if not event.ai_draft_text:
            logger.info("Send event %s had no AI draft, skipping.", event.email_id)
            return SendOutcome(correction=None, profile=None, skipped=True)
        context = CorrectionContext(
            business_id=event.business_id,
            thread_id=event.thread_id,
            category=event.category,
            email_id=event.email_id,
        )
        record = self.analyzer.analyze(event.ai_draft_text, event.final_text, context)
        profile = self.refiner.maybe_refine(event.business_id) if record else None
        return SendOutcome(correction=record, profile=profile)

    def refine(self, business_id: str) -> VoiceProfile | None:
        """Summary: Run a refinement pass if enough corrections are pending."""

        return self.refiner.maybe_refine(business_id)

    def corrections(
        self, business_id: str, status: LearningStatus | None = None, limit: int | None = None
    ) -> list[DraftCorrectionRecord]:
        """Summary: List stored corrections for a business."""

        return self.store.list_corrections(business_id, status=status, limit=limit)

    def voice_profile(self, business_id: str) -> VoiceProfile | None:
        """Summary: Return the current voice profile."""

        return self.store.get_voice_profile(business_id)

    def metrics(self, business_id: str) -> LearningMetrics:
        """Summary: Return learning metrics for a business."""

        return self.store.get_learning_metrics(business_id)

    def baseline(self, business_id: str, samples: list[str]) -> VoiceProfile:
        """Summary: Seed the voice profile from emails the business already sent.

        Importance: Never overwrites a profile that refinement has already updated.
        Alternatives: Merge samples into refined profiles.
        """

        existing = self.store.get_voice_profile(business_id)
        if existing is not None and existing.iteration_count > 0:
            raise ConfigurationError(
                f"Voice profile for {business_id} is already refined; erase learning first"
            )
        profile = build_baseline_profile(business_id, samples)
        self.store.save_voice_profile(profile)
        logger.info(
            "Stored baseline voice profile for business %s from %s samples.",
            business_id,
            profile.sample_count,
        )
        return profile

    def erase(self, business_id: str) -> int:
        """Summary: Erase all learning data for a business."""

        removed = self.store.erase_business_learning(business_id)
        logger.info("Erased learning data for business %s (%s corrections).", business_id, removed)
        return removed


@dataclass(frozen=True)
class TriageService:
    """Summary: Classifies inbound email with a business's deployed prompt.

    Importance: Gives local runs the same classification path the workflow engine uses.
    Alternatives: Classify only inside the external workflow engine.
    """

    configurations: ConfigurationService
    deployments: DeploymentService
    classifier: ClassificationService

    def classify(self, business_id: str, email: IncomingEmail) -> Classification | None:
        """Summary: Classify an email, deploying the prompt first if none exists.

        Importance: Reply eligibility uses the business's own domains.
        Alternatives: Reject classification until a prompt is deployed.
        """

        config = self.configurations.load(business_id)
        if config is None:
            return None
        artifact = self.deployments.current(business_id) or self.deployments.deploy(business_id)
        if artifact is None:
            return None
        nodes = build_taxonomy(config)
        return self.classifier.classify(artifact, nodes, email, config.business_domains)
