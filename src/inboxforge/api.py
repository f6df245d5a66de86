"""Summary: FastAPI application for InboxForge.

Importance: Exposes configuration, deployment, provisioning, and learning over HTTP.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from inboxforge.app import build_services
from inboxforge.config import AppConfig
from inboxforge.errors import ConfigurationError, ProviderError
from inboxforge.models import (
    CompiledPromptArtifact,
    DraftCorrectionRecord,
    IncomingEmail,
    LearningStatus,
    ProviderKind,
    SendEvent,
    VoiceProfile,
)

logger = logging.getLogger(__name__)


class ReconcileRequest(BaseModel):
    """Summary: Request payload for folder reconciliation.

    Importance: Tokens are supplied by the caller and never stored.
    Alternatives: Look tokens up from a connection table.
    """

    provider: ProviderKind
    access_token: str = Field(min_length=1)


class SendEventRequest(BaseModel):
    """Summary: Request payload describing a sent reply.

    Importance: Carries the AI draft and final text the learning loop compares.
    Alternatives: Fetch both texts from the mailbox.
    """

    business_id: str = Field(min_length=1)
    email_id: str
    thread_id: str
    ai_draft_text: str | None = None
    final_text: str | None = None
    category: str | None = None


class BaselineRequest(BaseModel):
    """Summary: Request payload with sample sent emails for a baseline profile."""

    samples: list[str] = Field(min_length=1)


class ClassifyRequest(BaseModel):
    """Summary: Request payload for classifying one inbound email.

    Importance: Lets integrations test a deployed prompt end to end.
    Alternatives: Classify only inside the workflow engine.
    """

    sender: str
    subject: str = ""
    body: str = ""
    email_id: str | None = None


def create_app(config: AppConfig) -> FastAPI:
    """Summary: Create a FastAPI app wired to InboxForge services.

    Importance: Ensures the API layer shares the same configuration and storage.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=config.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
        )
    app = FastAPI(title="InboxForge API", version="0.1.0")
    services = build_services(config)

    @app.exception_handler(ConfigurationError)
    def configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        """Summary: Report configuration problems as unprocessable requests."""

        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(ProviderError)
    def provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        """Summary: Report mailbox or AI provider failures as bad gateway responses."""

        logger.error("Provider failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Adds a minimal security layer for local and private deployments.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def _not_found(business_id: str) -> HTTPException:
        return HTTPException(status_code=404, detail=f"Business {business_id} not found")

    @app.get("/health")
    def health() -> dict[str, str]:
        """Summary: Health check endpoint.

        Importance: Supports uptime checks in local and cloud deployments.
        Alternatives: Use a metrics endpoint only.
        """

        return {"status": "ok"}

    @app.put("/businesses/{business_id}/config", dependencies=[Depends(require_api_key)])
    def put_config(business_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Summary: Store a business configuration document.

        Importance: Invalid roles, departments, or industries are rejected with 422.
        Alternatives: Accept partial updates.
        """

        config_record = services.configurations.save(business_id, payload)
        return asdict(config_record)

    @app.get("/businesses/{business_id}/config", dependencies=[Depends(require_api_key)])
    def get_config(business_id: str) -> dict[str, Any]:
        """Summary: Return the resolved configuration of a business."""

        config_record = services.configurations.load(business_id)
        if config_record is None:
            raise _not_found(business_id)
        return asdict(config_record)

    @app.get("/businesses/{business_id}/taxonomy", dependencies=[Depends(require_api_key)])
    def get_taxonomy(business_id: str) -> list[dict[str, Any]]:
        """Summary: Return the taxonomy built for a business.

        Importance: Lets operators preview folders before provisioning.
        Alternatives: Inspect the compiled prompt text.
        """

        nodes = services.configurations.taxonomy(business_id)
        if nodes is None:
            raise _not_found(business_id)
        return [
            {
                "path": node.path,
                "name": node.name,
                "kind": node.kind.value,
                "description": node.description,
                "allowed_departments": sorted(tag.value for tag in node.allowed_departments),
            }
            for node in nodes
        ]

    @app.post("/businesses/{business_id}/prompt", dependencies=[Depends(require_api_key)])
    def deploy_prompt(business_id: str) -> dict[str, Any]:
        """Summary: Compile and store the classifier prompt.

        Importance: Redeploying fully replaces the previous prompt.
        Alternatives: Compile on every classification request.
        """

        artifact = services.deployments.deploy(business_id)
        if artifact is None:
            raise _not_found(business_id)
        return _artifact_payload(artifact)

    @app.get("/businesses/{business_id}/prompt", dependencies=[Depends(require_api_key)])
    def get_prompt(business_id: str) -> dict[str, Any]:
        """Summary: Return the deployed prompt artifact."""

        artifact = services.deployments.current(business_id)
        if artifact is None:
            raise HTTPException(status_code=404, detail="No prompt deployed")
        return _artifact_payload(artifact)

    @app.post("/businesses/{business_id}/reconcile", dependencies=[Depends(require_api_key)])
    def reconcile(business_id: str, payload: ReconcileRequest) -> dict[str, Any]:
        """Summary: Reconcile mailbox folders with the business taxonomy.

        Importance: Partial failures are reported per path instead of failing the request.
        Alternatives: Return 502 when any folder fails.
        """

        mailbox = services.provisioning.build_mailbox(payload.provider, payload.access_token)
        result = services.provisioning.reconcile(business_id, mailbox)
        if result is None:
            raise _not_found(business_id)
        return result.to_dict()

    @app.get("/businesses/{business_id}/folders", dependencies=[Depends(require_api_key)])
    def list_folders(
        business_id: str, provider: ProviderKind | None = None, include_deleted: bool = False
    ) -> list[dict[str, Any]]:
        """Summary: List recorded folder entries."""

        entries = services.provisioning.folders(business_id, provider, include_deleted)
        return [asdict(entry) for entry in entries]

    @app.post("/send-events", dependencies=[Depends(require_api_key)])
    def send_event(payload: SendEventRequest) -> dict[str, Any]:
        """Summary: Record a sent reply and refine the voice profile when due.

        Importance: Entry point for the workflow engine's send notifications.
        Alternatives: Poll sent folders.
        """

        outcome = services.learning.record_send_event(
            SendEvent(
                business_id=payload.business_id,
                email_id=payload.email_id,
                thread_id=payload.thread_id,
                ai_draft_text=payload.ai_draft_text,
                final_text=payload.final_text,
                category=payload.category,
            )
        )
        return {
            "skipped": outcome.skipped,
            "correction": _correction_payload(outcome.correction) if outcome.correction else None,
            "refined": outcome.profile is not None,
            "profile": _profile_payload(outcome.profile) if outcome.profile else None,
        }

    @app.get("/businesses/{business_id}/corrections", dependencies=[Depends(require_api_key)])
    def list_corrections(
        business_id: str, status: LearningStatus | None = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Summary: List stored corrections for a business."""

        records = services.learning.corrections(business_id, status=status, limit=limit)
        return [_correction_payload(record) for record in records]

    @app.get("/businesses/{business_id}/voice-profile", dependencies=[Depends(require_api_key)])
    def get_voice_profile(business_id: str) -> dict[str, Any]:
        """Summary: Return the voice profile and learning metrics."""

        profile = services.learning.voice_profile(business_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="No voice profile")
        metrics = services.learning.metrics(business_id)
        return {**_profile_payload(profile), "metrics": asdict(metrics)}

    @app.post(
        "/businesses/{business_id}/voice-profile/baseline",
        dependencies=[Depends(require_api_key)],
    )
    def create_baseline(business_id: str, payload: BaselineRequest) -> dict[str, Any]:
        """Summary: Seed the voice profile from sample sent emails.

        Importance: Gives new businesses a starting profile before any corrections.
        Alternatives: Wait for the first refinement batch.
        """

        profile = services.learning.baseline(business_id, payload.samples)
        return _profile_payload(profile)

    @app.delete("/businesses/{business_id}/learning", dependencies=[Depends(require_api_key)])
    def erase_learning(business_id: str) -> dict[str, Any]:
        """Summary: Erase corrections, voice profile, and metrics of a business."""

        removed = services.learning.erase(business_id)
        return {"business_id": business_id, "corrections_removed": removed}

    @app.post("/businesses/{business_id}/classify", dependencies=[Depends(require_api_key)])
    def classify(business_id: str, payload: ClassifyRequest) -> dict[str, Any]:
        """Summary: Classify one inbound email with the deployed prompt.

        Importance: Department deployments answer OUT_OF_SCOPE for other categories.
        Alternatives: Expose only the prompt text.
        """

        result = services.triage.classify(
            business_id,
            IncomingEmail(
                sender=payload.sender,
                subject=payload.subject,
                body=payload.body,
                email_id=payload.email_id,
            ),
        )
        if result is None:
            raise _not_found(business_id)
        return asdict(result)

    return app


def _artifact_payload(artifact: CompiledPromptArtifact) -> dict[str, Any]:
    return {
        "business_id": artifact.business_id,
        "version": artifact.version,
        "generated_at": artifact.generated_at.isoformat(),
        "department_scope": [tag.value for tag in artifact.department_scope],
        "allowed_categories": list(artifact.allowed_categories),
        "text": artifact.text,
    }


def _profile_payload(profile: VoiceProfile) -> dict[str, Any]:
    return {
        "business_id": profile.business_id,
        "tone": profile.tone_signals,
        "formality": profile.formality_signals,
        "empathy": profile.empathy_signals,
        "structure": profile.structure_signals,
        "confidence": profile.confidence,
        "iteration_count": profile.iteration_count,
        "sample_count": profile.sample_count,
        "last_refined_at": profile.last_refined_at.isoformat() if profile.last_refined_at else None,
    }


def _correction_payload(record: DraftCorrectionRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "thread_id": record.thread_id,
        "email_id": record.email_id,
        "category": record.category,
        "edit_distance": record.edit_distance,
        "similarity_score": record.similarity_score,
        "correction_type": record.correction_type.value,
        "learning_status": record.learning_status.value,
        "created_at": record.created_at.isoformat(),
        "signals": record.signals.as_dict(),
    }


app = create_app(AppConfig.from_env())
