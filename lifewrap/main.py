"""
LifeWrap - Command-Line Entry Point

    python -m lifewrap.main engines
    python -m lifewrap.main summarize --level session notes1.txt notes2.txt
    python -m lifewrap.main set-key openai < key.txt
    python -m lifewrap.main prefer local
"""

import argparse
import getpass
import sys
from pathlib import Path

from lifewrap.ai.ollama_model_manager import OllamaModelManager
from lifewrap.ai.providers import RemoteProvider
from lifewrap.config import DEBUG_MODE
from lifewrap.coordinator import SummarizationCoordinator
from lifewrap.credential_store import CredentialStore, JsonFileCredentialStore
from lifewrap.engines.base import DEFAULT_FALLBACK_ORDER, EngineTier
from lifewrap.engines.basic import BasicEngine
from lifewrap.engines.on_device import OnDeviceEngine
from lifewrap.engines.remote import RemoteEngine
from lifewrap.errors import SummarizationError
from lifewrap.logging_config import error, info
from lifewrap.prompting.schemas import SummaryLevel
from lifewrap.summarization.result_types import SourceUnit
from lifewrap.user_preferences import UserPreferencesManager, get_user_preferences


def build_coordinator(
    prefs: UserPreferencesManager,
    credential_store: CredentialStore,
) -> SummarizationCoordinator:
    """Wire one engine per tier from the saved preferences."""
    # Deferred: pulls in llama-cpp-python
    from lifewrap.ai.llama_model_manager import LlamaModelManager
    from lifewrap.engines.local import LocalEngine

    provider = prefs.get_remote_provider()
    engines = [
        RemoteEngine(credential_store, provider=provider, model=prefs.get_remote_model(provider)),
        OnDeviceEngine(OllamaModelManager()),
        LocalEngine(LlamaModelManager(prefs.get_local_model())),
        BasicEngine(),
    ]
    return SummarizationCoordinator(engines, preference=prefs.to_coordinator_preference())


def _read_secret(prompt: str) -> str:
    if sys.stdin.isatty():
        return getpass.getpass(prompt)
    return sys.stdin.readline().strip()


def cmd_engines(args, prefs, credential_store) -> int:
    coordinator = build_coordinator(prefs, credential_store)
    try:
        available = set(coordinator.get_available_engines())
        active = coordinator.get_active_engine()
        preferred = prefs.get_preferred_tier()

        print("\n" + "=" * 60)
        print("SUMMARIZATION ENGINES")
        print("=" * 60)
        for tier in DEFAULT_FALLBACK_ORDER:
            status = "[OK]" if tier in available else "[--]"
            marker = "  <- active" if tier is active else ""
            privacy = "private" if tier.is_privacy_preserving else "sends text off-device"
            print(f"{status} {tier.display_name:<22} ({tier.value}, {privacy}){marker}")
        print("=" * 60)
        print(f"Preference: {preferred.value if preferred else 'auto'}")
    finally:
        coordinator.close()
    return 0


def cmd_summarize(args, prefs, credential_store) -> int:
    units = []
    for file_name in args.files:
        path = Path(file_name)
        units.append(SourceUnit(unit_id=path.stem, text=path.read_text(encoding='utf-8'), session_id=args.session))

    coordinator = build_coordinator(prefs, credential_store)
    try:
        metadata = {'session_id': args.session} if args.session else {}
        tier = EngineTier(args.tier) if args.tier else None
        summary = coordinator.summarize(SummaryLevel(args.level), units, metadata=metadata, tier=tier)
    finally:
        coordinator.close()

    print(summary.to_json())
    return 0


def cmd_set_key(args, prefs, credential_store) -> int:
    provider = RemoteProvider(args.provider)
    api_key = _read_secret(f"{provider.display_name} API key: ")
    if not api_key:
        error("[CLI] No API key given")
        return 1

    if args.verify:
        engine = RemoteEngine(credential_store, provider=provider)
        try:
            engine.validate_api_key(provider, api_key)
        finally:
            engine.close()

    credential_store.set(provider, api_key)
    prefs.set_remote_provider(provider)
    info(f"[CLI] Stored {provider.display_name} API key")
    return 0


def cmd_delete_key(args, prefs, credential_store) -> int:
    provider = RemoteProvider(args.provider)
    credential_store.delete(provider)
    info(f"[CLI] Removed {provider.display_name} API key")
    return 0


def cmd_prefer(args, prefs, credential_store) -> int:
    prefs.set_preferred_tier(args.tier)
    info(f"[CLI] Preferred engine: {args.tier}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lifewrap",
        description="LifeWrap - Hierarchical transcript summarization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Which engines can run right now
  python -m lifewrap.main engines

  # Summarize two transcript chunks as one session, on the local model only
  python -m lifewrap.main summarize --level session --tier local a.txt b.txt

  # Store an API key (read from stdin) and let automatic selection use it
  python -m lifewrap.main set-key anthropic < key.txt
  python -m lifewrap.main prefer auto

  # Debug mode (verbose logging)
  DEBUG=true python -m lifewrap.main summarize --level chunk chunk.txt
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    engines = subparsers.add_parser('engines', help='List engine tiers and availability')
    engines.set_defaults(func=cmd_engines)

    summarize = subparsers.add_parser('summarize', help='Summarize text files; prints JSON')
    summarize.add_argument(
        '--level',
        required=True,
        choices=[level.value for level in SummaryLevel],
        help='Summary level (schema) to produce'
    )
    summarize.add_argument(
        '--tier',
        choices=[tier.value for tier in EngineTier],
        help='Use exactly this engine; no fallback (default: automatic)'
    )
    summarize.add_argument('--session', help='Session id for the inputs (enables chunk caching)')
    summarize.add_argument('files', nargs='+', help='Text files, one source unit each')
    summarize.set_defaults(func=cmd_summarize)

    providers = [provider.value for provider in RemoteProvider]

    set_key = subparsers.add_parser('set-key', help='Store a remote API key read from stdin')
    set_key.add_argument('provider', choices=providers)
    set_key.add_argument(
        '--no-verify',
        dest='verify',
        action='store_false',
        help='Store without a test request to the provider'
    )
    set_key.set_defaults(func=cmd_set_key)

    delete_key = subparsers.add_parser('delete-key', help='Remove a stored remote API key')
    delete_key.add_argument('provider', choices=providers)
    delete_key.set_defaults(func=cmd_delete_key)

    prefer = subparsers.add_parser('prefer', help='Persist the preferred engine tier')
    prefer.add_argument('tier', choices=[tier.value for tier in EngineTier] + ['auto'])
    prefer.set_defaults(func=cmd_prefer)

    return parser


def main(argv=None, prefs=None, credential_store=None) -> int:
    args = build_parser().parse_args(argv)
    prefs = prefs or get_user_preferences()
    credential_store = credential_store or JsonFileCredentialStore()

    try:
        return args.func(args, prefs, credential_store)
    except SummarizationError as e:
        error(f"[CLI] {type(e).__name__}: {e}", exc_info=DEBUG_MODE)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
