"""
CLI entry point.

Commands:
- init: Initialize data directory and database
- remember <text>: Store a memory (--importance, --category, --user, --session)
- recall <query>: Recall memories (--user, --category, --limit)
- hybrid <query>: Hybrid recall (--user, --category, --limit)
- similar <memory_id>: Find near-duplicate memories (--limit)
- forget <memory_id>: Delete a memory
- context <query>: Show assembled prompt context (--user, --session)
- health: Check store and embedding provider

Flags:
- --debug: Enable debug logging to file
"""

import asyncio
import logging
import sys

from recollect.client import AgentMemory
from recollect.core.config import Settings, get_settings
from recollect.core.errors import RecollectError
from recollect.core.logging import get_logger, setup_logging
from recollect.core.types import Memory
from recollect.embeddings.base import Unavailable

USAGE = """Usage: recollect [--debug] <command> [args] [--option value ...]
Commands: init, remember, recall, hybrid, similar, forget, context, health
Flags: --debug (enable debug logging to data/recollect.log)"""

COMMANDS_WITH_ARGUMENT = {"remember", "recall", "hybrid", "similar", "forget", "context"}


def parse_args(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Split argv into positional words and --key value options."""
    positional: list[str] = []
    options: dict[str, str] = {}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg.startswith("--"):
            if i + 1 >= len(args):
                raise ValueError(f"Missing value for {arg}")
            options[arg[2:]] = args[i + 1]
            i += 2
        else:
            positional.append(arg)
            i += 1
    return positional, options


def format_memory(memory: Memory) -> str:
    """One-line memory rendering for terminal output."""
    tags = [f"importance={memory.importance:.2f}"]
    if memory.category:
        tags.append(f"category={memory.category}")
    if memory.user_id:
        tags.append(f"user={memory.user_id}")
    return f"{memory.id}  {memory.content}  [{', '.join(tags)}]"


def main() -> int:
    """Main entry point."""
    settings = get_settings()

    debug_mode = "--debug" in sys.argv
    if debug_mode:
        sys.argv.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.INFO
    log_file = settings.data_dir / "recollect.log"
    setup_logging(level=log_level, log_file=log_file)
    logger = get_logger("cli")

    if len(sys.argv) < 2:
        print(USAGE)
        return 1

    command = sys.argv[1]
    try:
        positional, options = parse_args(sys.argv[2:])
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if command == "init":
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized data directory: {settings.data_dir}")
        return asyncio.run(_init_db(settings))

    if command not in COMMANDS_WITH_ARGUMENT and command != "health":
        print(f"Unknown command: {command}")
        return 1

    if command in COMMANDS_WITH_ARGUMENT and not positional:
        print(f"Usage: recollect {command} <{'memory_id' if command in ('similar', 'forget') else 'text'}>")
        return 1

    return asyncio.run(_run_command(settings, command, " ".join(positional), options))


async def _init_db(settings: Settings) -> int:
    memory = AgentMemory.from_settings(settings)
    async with memory:
        print(f"Created: {settings.db_path}")
    return 0


async def _run_command(
    settings: Settings, command: str, argument: str, options: dict[str, str]
) -> int:
    """Run a memory command against the configured store."""
    logger = get_logger("cli.command")
    try:
        limit = int(options["limit"]) if "limit" in options else None
        memory = AgentMemory.from_settings(settings)
        async with memory:
            if command == "remember":
                stored = await memory.remember(
                    argument,
                    importance=float(options.get("importance", 0.5)),
                    category=options.get("category"),
                    user_id=options.get("user"),
                    session_id=options.get("session"),
                )
                print(format_memory(stored))

            elif command in ("recall", "hybrid", "similar"):
                if command == "recall":
                    results = await memory.recall(
                        argument,
                        user_id=options.get("user"),
                        category=options.get("category"),
                        limit=limit,
                    )
                elif command == "hybrid":
                    results = await memory.hybrid_recall(
                        argument,
                        user_id=options.get("user"),
                        category=options.get("category"),
                        limit=limit,
                    )
                else:
                    results = await memory.find_similar_memories(argument, limit=limit)
                for item in results:
                    print(format_memory(item))
                if not results:
                    print("No memories found.")

            elif command == "forget":
                await memory.forget(argument)
                print(f"Forgot {argument}")

            elif command == "context":
                payload = await memory.get_context(
                    argument,
                    user_id=options.get("user"),
                    session_id=options.get("session"),
                )
                print(payload.summary)
                for message in payload.recent_messages:
                    print(f"[{message.role.value}] {message.content}")

            elif command == "health":
                return await _health_check(memory)

    except (RecollectError, ValueError) as e:
        logger.error(f"{command} failed: {e}")
        print(f"Error: {e}")
        return 1
    return 0


async def _health_check(memory: AgentMemory) -> int:
    """Check store access and embedding provider."""
    print(f"Store: {memory.store.db_path}")
    await memory.get_memories(limit=1)
    print("  store: OK")

    embedder = memory.engine.embedder
    if not embedder.configured:
        print("  embeddings: not configured (keyword recall only)")
        return 0

    result = await embedder.embed("health check")
    if isinstance(result, Unavailable):
        print(f"  embeddings ({embedder.name}): unavailable - {result.reason}")
        return 1
    print(f"  embeddings ({embedder.name}): OK ({len(result)} dimensions)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
