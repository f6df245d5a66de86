"""Summary: Command-line interface for InboxForge.

Importance: Provides a local entry point for onboarding, deployment, and learning workflows.
Alternatives: Operate only through the HTTP API.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import uvicorn

from inboxforge.app import build_services
from inboxforge.config import AppConfig
from inboxforge.models import IncomingEmail, ProviderKind, SendEvent


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="InboxForge CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")

    load_config = subparsers.add_parser("load-config", help="Store a business configuration")
    load_config.add_argument("business_id", type=str)
    load_config.add_argument("json_path", type=str)

    show_taxonomy = subparsers.add_parser("show-taxonomy", help="Print the business taxonomy")
    show_taxonomy.add_argument("business_id", type=str)

    compile_prompt = subparsers.add_parser("compile", help="Compile and store the prompt")
    compile_prompt.add_argument("business_id", type=str)
    compile_prompt.add_argument("--print", dest="print_text", action="store_true")

    reconcile = subparsers.add_parser("reconcile", help="Reconcile mailbox folders")
    reconcile.add_argument("business_id", type=str)
    reconcile.add_argument(
        "--provider", choices=[kind.value for kind in ProviderKind], required=True
    )
    reconcile.add_argument("--token", type=str, required=True)

    list_folders = subparsers.add_parser("list-folders", help="List recorded folder entries")
    list_folders.add_argument("business_id", type=str)
    list_folders.add_argument("--provider", choices=[kind.value for kind in ProviderKind])
    list_folders.add_argument("--include-deleted", action="store_true")

    record_send = subparsers.add_parser("record-send", help="Record a sent reply")
    record_send.add_argument("business_id", type=str)
    record_send.add_argument("--email-id", type=str, required=True)
    record_send.add_argument("--thread-id", type=str, required=True)
    record_send.add_argument("--draft-file", type=str, required=True)
    record_send.add_argument("--final-file", type=str, default=None)
    record_send.add_argument("--category", type=str, default=None)

    refine = subparsers.add_parser("refine", help="Refine the voice profile if a batch is ready")
    refine.add_argument("business_id", type=str)

    voice_profile = subparsers.add_parser("voice-profile", help="Show the voice profile")
    voice_profile.add_argument("business_id", type=str)

    baseline = subparsers.add_parser("baseline", help="Seed the voice profile from sent emails")
    baseline.add_argument("business_id", type=str)
    baseline.add_argument("paths", nargs="+", type=str)

    erase = subparsers.add_parser("erase-learning", help="Erase learning data for a business")
    erase.add_argument("business_id", type=str)

    classify = subparsers.add_parser("classify", help="Classify an email with the deployed prompt")
    classify.add_argument("business_id", type=str)
    classify.add_argument("--sender", type=str, required=True)
    classify.add_argument("--subject", type=str, default="")
    classify.add_argument("--body-file", type=str, required=True)

    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Run the CLI command dispatcher.

    Importance: Drives onboarding and maintenance without a UI.
    Alternatives: Invoke services via an HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    logging.basicConfig(
        level=config.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
    )
    services = build_services(config)

    if args.command == "serve":
        uvicorn.run("inboxforge.api:app", host=config.api_host, port=config.api_port)
        return

    if args.command == "init-db":
        print(f"Initialized database at {config.db_path}.")
        return

    if args.command == "load-config":
        document = json.loads(Path(args.json_path).read_text(encoding="utf-8"))
        business = services.configurations.save(args.business_id, document)
        print(f"Stored configuration for {business.business_id}.")
        return

    if args.command == "show-taxonomy":
        nodes = services.configurations.taxonomy(args.business_id)
        if nodes is None:
            print(f"No configuration for {args.business_id}.")
            return
        for node in nodes:
            indent = "  " * (len(node.path.split("/")) - 1)
            print(f"{indent}{node.name}")
        return

    if args.command == "compile":
        artifact = services.deployments.deploy(args.business_id)
        if artifact is None:
            print(f"No configuration for {args.business_id}.")
            return
        print(f"Deployed prompt {artifact.version}.")
        if args.print_text:
            print(artifact.text)
        return

    if args.command == "reconcile":
        mailbox = services.provisioning.build_mailbox(ProviderKind(args.provider), args.token)
        result = services.provisioning.reconcile(args.business_id, mailbox)
        if result is None:
            print(f"No configuration for {args.business_id}.")
            return
        print(json.dumps(result.to_dict(), indent=2))
        return

    if args.command == "list-folders":
        provider = ProviderKind(args.provider) if args.provider else None
        for entry in services.provisioning.folders(
            args.business_id, provider, args.include_deleted
        ):
            state = " (deleted)" if entry.deleted else ""
            print(f"{entry.provider_kind.value}: {entry.path} -> {entry.external_id}{state}")
        return

    if args.command == "record-send":
        final_text = (
            Path(args.final_file).read_text(encoding="utf-8") if args.final_file else None
        )
        outcome = services.learning.record_send_event(
            SendEvent(
                business_id=args.business_id,
                email_id=args.email_id,
                thread_id=args.thread_id,
                ai_draft_text=Path(args.draft_file).read_text(encoding="utf-8"),
                final_text=final_text,
                category=args.category,
            )
        )
        if outcome.correction is None:
            print("No correction recorded.")
        else:
            record = outcome.correction
            print(
                f"Recorded {record.correction_type.value} correction "
                f"(similarity {record.similarity_score:.2f})."
            )
        if outcome.profile is not None:
            print(f"Voice profile refined to iteration {outcome.profile.iteration_count}.")
        return

    if args.command == "refine":
        profile = services.learning.refine(args.business_id)
        if profile is None:
            print("Not enough pending corrections.")
            return
        print(
            f"Refined to iteration {profile.iteration_count} "
            f"(confidence {profile.confidence:.2f})."
        )
        return

    if args.command == "voice-profile":
        profile = services.learning.voice_profile(args.business_id)
        if profile is None:
            print(f"No voice profile for {args.business_id}.")
            return
        print(f"confidence: {profile.confidence:.2f}")
        print(f"iteration_count: {profile.iteration_count}")
        print(f"sample_count: {profile.sample_count}")
        for name, value in profile.signal_values().items():
            print(f"{name}: {value:+.2f}")
        return

    if args.command == "baseline":
        samples = [Path(path).read_text(encoding="utf-8") for path in args.paths]
        profile = services.learning.baseline(args.business_id, samples)
        print(f"Stored baseline from {profile.sample_count} samples.")
        return

    if args.command == "erase-learning":
        removed = services.learning.erase(args.business_id)
        print(f"Erased learning data ({removed} corrections).")
        return

    if args.command == "classify":
        result = services.triage.classify(
            args.business_id,
            IncomingEmail(
                sender=args.sender,
                subject=args.subject,
                body=Path(args.body_file).read_text(encoding="utf-8"),
            ),
        )
        if result is None:
            print(f"No configuration for {args.business_id}.")
            return
        print(f"{result.primary_category}/{result.secondary_category or '-'}")
        print(f"confidence: {result.confidence:.2f} ai_can_reply: {result.ai_can_reply}")
        return


if __name__ == "__main__":
    run_cli()
