"""
Momory CLI entry point.

Usage:
    momory                          Chat with memory (interactive)
    momory --version                Show version
    momory --config <path>          Use custom config file
    momory config show              Show current configuration
    momory config init              Write the default configuration
    momory stats                    Show memory counts
    momory recall <query>           Show memories relevant to a query
    momory remember <type> <text>   Store a memory directly
    momory maintain                 Run decay, summarization and pruning
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from momory import __version__
from momory.config.loader import load_config
from momory.config.schemas import MomoryConfig
from momory.errors import SaveStatus
from momory.memory.manager import MemoryManager
from momory.memory.schemas import MemoryCandidate, MemoryType
from momory.telemetry.logger import get_logger, setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="momory",
        description="Persistent memory for conversational agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  momory                                  Start a chat session
  momory recall "deadline"                Show relevant memories
  momory remember preference "Likes tea"  Store a memory
  momory maintain                         Compress and prune old memories
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Path to custom configuration file",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override log level",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser("show", help="Show current configuration")
    config_subparsers.add_parser("init", help="Initialize default configuration")

    subparsers.add_parser("stats", help="Show memory counts")

    recall_parser = subparsers.add_parser("recall", help="Show memories relevant to a query")
    recall_parser.add_argument("query", help="Query text")

    remember_parser = subparsers.add_parser("remember", help="Store a memory")
    remember_parser.add_argument("type", choices=[t.value for t in MemoryType])
    remember_parser.add_argument("content", help="Memory text")
    remember_parser.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")

    subparsers.add_parser("maintain", help="Run decay, summarization and pruning")

    return parser


def _load(config_path: Optional[Path], log_level: Optional[str]) -> MomoryConfig:
    config = load_config(config_path)
    if log_level:
        config.log_level = log_level
    setup_logging(config.log_level, config.log_file, config.json_logs)
    return config


def cmd_config_show(config_path: Optional[Path]) -> int:
    """Show current configuration."""
    try:
        config = load_config(config_path)
        print("Current Momory Configuration:")
        print("=" * 50)
        print(config.model_dump_json(indent=2))
        return 0
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1


def cmd_config_init(config_path: Optional[Path]) -> int:
    """Initialize default configuration file."""
    from momory.config.loader import create_default_config, get_default_config_path

    target_path = config_path or get_default_config_path()
    try:
        create_default_config(target_path)
        print(f"Created default configuration at: {target_path}")
        return 0
    except OSError as e:
        print(f"Error creating configuration: {e}", file=sys.stderr)
        return 1


async def cmd_stats(manager: MemoryManager) -> int:
    stats = await manager.get_stats()
    print(json.dumps(stats, indent=2, default=str))
    return 0


async def cmd_recall(manager: MemoryManager, query: str) -> int:
    """Print the ranked memories and summary chunks for a query."""
    result = await manager.recall(query)
    if not result.ok:
        print(f"Recall failed: {result.error}", file=sys.stderr)
        return 1

    context = result.value
    if context is None or context.is_empty:
        print("No relevant memories found.")
        return 0

    for scored in context.memories:
        record = scored.record
        print(f"{scored.similarity:.2f}  [{record.type.value}] {record.content}")
    for scored in context.summary_chunks:
        print(f"{scored.similarity:.2f}  [summary] {scored.chunk.content.strip()[:120]}")
    return 0


async def cmd_remember(manager: MemoryManager, memory_type: str, content: str, tags: list[str]) -> int:
    candidate = MemoryCandidate(type=MemoryType(memory_type), content=content, tags=tags)
    outcome = await manager.remember(candidate, source="cli")

    if outcome.status == SaveStatus.SAVED and outcome.record:
        print(f"Saved memory: {outcome.record.id}")
        return 0
    if outcome.status == SaveStatus.DUPLICATE and outcome.record:
        print(f"Already known ({outcome.match_reason}, {outcome.similarity:.2f}): {outcome.record.content}")
        return 0

    print(f"Failed to save memory: {outcome.error}", file=sys.stderr)
    return 1


async def cmd_maintain(manager: MemoryManager) -> int:
    report = await manager.run_maintenance()
    print(f"Decayed: {report.decayed}")
    print(f"Summaries created: {report.summaries_created} ({report.summarized_records} records)")
    print(f"Pruned: {report.pruned}")
    for error in report.errors:
        print(f"  Error: {error}", file=sys.stderr)
    return 0 if report.ok else 1


async def cmd_chat(manager: MemoryManager) -> int:
    """Interactive chat loop; an empty line or EOF exits."""
    logger = get_logger(__name__)
    logger.info("Starting Momory chat", version=__version__)

    while True:
        try:
            message = await asyncio.to_thread(input, "you> ")
        except EOFError:
            break
        if not message.strip():
            break

        result = await manager.respond(message)
        if result.ok:
            print(f"momory> {result.value}")
        else:
            print(f"Error: {result.error}", file=sys.stderr)

    await manager.lifecycle.wait()
    return 0


async def _run(args: argparse.Namespace, config: MomoryConfig) -> int:
    manager = MemoryManager.from_config(config)
    try:
        if args.command == "stats":
            return await cmd_stats(manager)
        if args.command == "recall":
            return await cmd_recall(manager, args.query)
        if args.command == "remember":
            return await cmd_remember(manager, args.type, args.content, args.tag)
        if args.command == "maintain":
            return await cmd_maintain(manager)
        return await cmd_chat(manager)
    finally:
        await manager.close()
        for collaborator in (manager.embedder, manager.generator):
            close = getattr(collaborator, "close", None)
            if close is not None:
                await close()


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command == "config":
        if args.config_command == "show":
            return cmd_config_show(args.config)
        elif args.config_command == "init":
            return cmd_config_init(args.config)
        else:
            parser.parse_args(["config", "--help"])
            return 1

    try:
        config = _load(args.config, args.log_level)
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
