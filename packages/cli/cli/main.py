"""Command-line interface for the read-only query gate.

Subcommands:
    query  run one query through the gate and print the JSON ToolResponse
    check  validate a query without touching the database
    chat   interactive chatbot that queries through the gate
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv  # type: ignore

from chatbot.ChatBot import DEFAULT_MODEL, ChatBot  # type: ignore
from database.DatabaseProvider import DatabaseProvider  # type: ignore
from gate.QueryValidator import QueryValidator  # type: ignore
from gate.ReadDataTool import ReadDataTool  # type: ignore


def _read_query(parts: list[str]) -> str:
    """Join positional words into a query, or read stdin when none are given."""
    if parts:
        return " ".join(parts).strip()
    return sys.stdin.read().strip()


def run_query(query: str) -> int:
    """Execute ``query`` against the configured database and print the result."""
    provider = DatabaseProvider.from_environment()
    try:
        tool = ReadDataTool(provider.create_executor())
        result = asyncio.run(tool.run(query))
    finally:
        provider.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


def check_query(query: str) -> int:
    """Validate ``query`` only and report the verdict."""
    verdict = QueryValidator().validate(query)
    if verdict.valid:
        print("valid")
        return 0
    print(f"invalid: {verdict.reason}")
    return 1


async def _chat_loop(bot: ChatBot) -> None:
    print("Read Gate Assistant (type 'quit' or 'exit' to stop)")
    print("-" * 52)

    conversation_id = None

    while True:
        try:
            user_input = (await asyncio.to_thread(input, "\nYou: ")).strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit"):
            print("Goodbye!")
            break

        print("\nThinking...")
        conversation_id, response = await bot.process_message(
            user_input,
            conversation_id=conversation_id,
            on_tool_call=lambda sql: print(f"Executed Query: {sql}"),
        )
        print(f"\nAssistant: {response}")


def run_chat() -> int:
    """Run the interactive chatbot REPL."""
    api_key = os.environ["OPENAI_API_KEY"]

    provider = DatabaseProvider.from_environment()
    try:
        tool = ReadDataTool(provider.create_executor())
        bot = ChatBot(tool, api_key, model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL))
        asyncio.run(_chat_loop(bot))
    finally:
        provider.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="read-gate",
        description="Run read-only SQL queries through the validation gate.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    query_parser = subparsers.add_parser(
        "query", help="Execute a query and print the JSON tool response"
    )
    query_parser.add_argument(
        "sql", nargs="*", help="SQL query (read from stdin when omitted)"
    )

    check_parser = subparsers.add_parser(
        "check", help="Validate a query without executing it"
    )
    check_parser.add_argument(
        "sql", nargs="*", help="SQL query (read from stdin when omitted)"
    )

    subparsers.add_parser("chat", help="Start an interactive chat session")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``read-gate`` console script.

    Database settings come from ``DATABASE_URL`` or ``DB_PATH`` (a ``.env``
    file is honoured); ``chat`` also needs ``OPENAI_API_KEY``.
    """
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    args = build_parser().parse_args(argv)

    if args.command == "query":
        return run_query(_read_query(args.sql))
    if args.command == "check":
        return check_query(_read_query(args.sql))
    return run_chat()


if __name__ == "__main__":
    sys.exit(main())
