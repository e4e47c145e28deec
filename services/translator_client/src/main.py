"""
Command-line front end for the translator client.

Each invocation is a fresh client: the persisted session is restored on
start, exactly as a reloaded browser tab would.
"""

import argparse
import asyncio
import getpass
import logging
import signal
import sys
from contextlib import suppress

import structlog
from dotenv import load_dotenv

from .app import TranslatorClient
from .config import ClientConfig, set_config
from .models.catalog import LANGUAGES, SUBSCRIPTION_TIERS
from .models.job import Done, Failed, JobState, Translating, Uploading
from .notices import Notice
from .session.auth_flow import AuthMode


def setup_logging(config: ClientConfig) -> None:
    """Configure structured logging for the client."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, config.log_level.upper(), logging.INFO),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="translator-client", description="Academic document translator client")
    parser.add_argument("--redirect", help="Payment redirect URL or query the client was opened with")
    sub = parser.add_subparsers(dest="command", required=True)

    signup = sub.add_parser("signup", help="Create an account")
    signup.add_argument("--name", required=True)
    signup.add_argument("--email", required=True)
    signup.add_argument("--password", help="Prompted for when omitted")
    signup.add_argument("--accept-terms", action="store_true", help="Accept the terms of service")

    signin = sub.add_parser("signin", help="Sign in")
    signin.add_argument("--email", required=True)
    signin.add_argument("--password", help="Prompted for when omitted")

    sub.add_parser("signout", help="Sign out and forget the stored session")
    sub.add_parser("status", help="Show the signed-in user and remaining translations")
    sub.add_parser("plans", help="List subscription plans")
    sub.add_parser("languages", help="List supported languages")
    sub.add_parser("documents", help="List uploaded documents")

    translate = sub.add_parser("translate", help="Upload and translate a document")
    translate.add_argument("file")
    translate.add_argument("--source", default=None, help="Source language code (default from config)")
    translate.add_argument("--target", default=None, help="Target language code (default from config)")

    download = sub.add_parser("download", help="Download a document")
    download.add_argument("doc_id")
    download.add_argument("--out", default=".", help="Directory or file path to write to")

    upgrade = sub.add_parser("upgrade", help="Start purchasing a paid plan")
    upgrade.add_argument("tier", choices=[tier.value for tier in SUBSCRIPTION_TIERS])

    sub.add_parser("verify", help="Confirm a completed payment and apply the upgrade")
    sub.add_parser("abandon-payment", help="Forget a pending payment")

    resume = sub.add_parser("resume-payment", help="Resume after the payment provider redirected back")
    resume.add_argument("location", help="Redirect URL or query, e.g. 'payment=success'")
    return parser


def _print_notice(notice: Notice | None) -> None:
    if notice is not None:
        print(f"[{notice.level.value}] {notice.text}")


def _print_state(state: JobState) -> None:
    if isinstance(state, Uploading):
        print(f"  uploading {state.filename}: {state.progress.value}%")
    elif isinstance(state, Translating):
        kind = "reported" if state.progress.authoritative else "estimated"
        print(f"  translating ({state.mode.value}): {state.progress.value}% [{kind}] {state.status_message}")


async def _run_translate(client: TranslatorClient, args: argparse.Namespace) -> int:
    orchestrator = client.orchestrator
    source = args.source or orchestrator.source_lang
    target = args.target or orchestrator.target_lang
    if not orchestrator.set_languages(source, target) or not orchestrator.select_file(args.file):
        return 1

    orchestrator.add_listener(_print_state)
    loop = asyncio.get_running_loop()
    with suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)

    if not await orchestrator.start():
        return 1
    outcome = await orchestrator.wait_until_settled()
    await orchestrator.drain()
    if isinstance(outcome, Done):
        summary = client.session.quota_summary()
        if summary:
            print(f"Done: document {outcome.doc_id}. {summary.remaining_label} translations remaining.")
        return 0
    if isinstance(outcome, Failed):
        return 1
    return 2


async def _run(args: argparse.Namespace, config: ClientConfig) -> int:
    client = TranslatorClient(config)
    client.notices.add_listener(_print_notice)
    try:
        authenticated = await client.start(args.redirect)
        command = args.command

        if command == "plans":
            for plan in SUBSCRIPTION_TIERS.values():
                print(f"{plan.tier.value:<13} {plan.name:<13} R{plan.price:<5} {', '.join(plan.features)}")
            return 0
        if command == "languages":
            for language in LANGUAGES:
                suffix = " (source only)" if language.source_only else ""
                print(f"{language.code:<5} {language.name}{suffix}")
            return 0
        if command == "signup":
            client.auth.switch_mode(AuthMode.SIGN_UP)
            client.auth.update(
                name=args.name,
                email=args.email,
                password=args.password or getpass.getpass("Password: "),
                terms_accepted=args.accept_terms,
            )
            await client.auth.submit()
            return 1 if client.auth.form.error else 0
        if command == "signin":
            client.auth.update(email=args.email, password=args.password or getpass.getpass("Password: "))
            session = await client.auth.submit()
            if session is None:
                print(f"Sign-in failed: {client.auth.form.error}")
                return 1
            return 0

        if not authenticated:
            print("Not signed in. Run 'translator-client signin' first.")
            return 1

        if command == "signout":
            await client.session.sign_out()
            print("Signed out")
            return 0
        if command == "status":
            summary = client.session.quota_summary()
            user = client.session.user
            if summary is None or user is None:
                return 1
            print(f"{user.name or user.email} <{user.email}>")
            print(f"Plan: {summary.tier_name}")
            print(f"Translations remaining this month: {summary.remaining_label} / {summary.limit_label}")
            if summary.upgrade_required:
                print("Translation limit reached. Upgrade with 'translator-client upgrade professional'.")
            return 0
        if command == "documents":
            documents = await client.documents.refresh()
            if not documents:
                print("No documents yet")
            for doc in documents:
                uploaded = doc.upload_time.isoformat(timespec="minutes") if doc.upload_time else "-"
                print(f"{doc.doc_id}  {doc.status.value:<12} {uploaded:<17} {doc.filename}")
            return 0
        if command == "translate":
            return await _run_translate(client, args)
        if command == "download":
            await client.documents.refresh()
            path = await client.documents.download(args.doc_id, args.out)
            if path is None:
                return 1
            print(path)
            return 0
        if command == "upgrade":
            return 0 if await client.payment.select_tier(args.tier) else 1
        if command == "verify":
            return 0 if await client.payment.confirm_paid() else 1
        if command == "abandon-payment":
            await client.payment.abandon()
            return 0
        if command == "resume-payment":
            return 0 if await client.payment.resume_from_redirect(args.location) else 1
        return 2
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv()
    config = ClientConfig.from_env()
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Configuration error: {error}", file=sys.stderr)
        return 2

    set_config(config)
    setup_logging(config)
    args = build_parser().parse_args(argv)
    return asyncio.run(_run(args, config))


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
