#!/usr/bin/env python3
"""
TripMate Interactive CLI

A terminal chat for trying the assistant locally. Runs the same guardrail,
orchestrator and assembler as the HTTP API against an in-memory history.
"""

import argparse
import asyncio
import contextlib
import json
import logging
import sys
from typing import Optional

from .config import config
from .errors import ConfigurationError
from .guardrail import TopicGuardrail
from .history import InMemoryHistoryStore
from .models import Message, ToolCallPart, ToolResultPart
from .orchestration import OpenAIModelClient
from .service import ChatService, new_conversation_id
from .tools import WeatherService, build_default_registry

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    banner = """
╔════════════════════════════════════════════════════════════════╗
║                      TripMate Interactive                      ║
║                                                                ║
║  Travel suggestions, weather and packing help in your terminal ║
╚════════════════════════════════════════════════════════════════╝

Available commands:
  /help     - Show this help message
  /tools    - List available tools
  /history  - Show the stored conversation
  /new      - Start a new conversation
  /verbose  - Toggle verbose mode (shows reasoning)
  /quit     - Exit the CLI

Ask about a destination, its weather, or what to pack.
"""
    print(banner)


def _short(value, limit: int = 200) -> str:
    text = json.dumps(value, default=str)
    return text if len(text) <= limit else text[:limit] + "..."


def print_history(messages: tuple[Message, ...]) -> None:
    """Print stored messages of the current conversation."""
    if not messages:
        print("\nNo stored messages yet.\n")
        return

    print("\n" + "═" * 70)
    print("CONVERSATION HISTORY")
    print("═" * 70)
    for message in messages:
        print(f"\n[{message.role}]")
        if message.text:
            print(f"  {message.text}")
        for part in message.parts:
            if isinstance(part, ToolCallPart):
                print(f"  → {part.tool_name}({_short(part.input)})")
            elif isinstance(part, ToolResultPart):
                print(f"  ← {part.tool_name}: {_short(part.output)}")
    print()


class InteractiveCLI:
    """Interactive CLI for TripMate."""

    def __init__(self, service: ChatService, verbose: bool = False):
        self.service = service
        self.verbose = verbose
        self.conversation_id = new_conversation_id()
        self.loop = asyncio.new_event_loop()

    def toggle_verbose(self) -> None:
        """Toggle verbose mode."""
        self.verbose = not self.verbose
        logging.getLogger("tripmate").setLevel(
            logging.DEBUG if self.verbose else logging.WARNING
        )
        print(f"\nVerbose mode: {'ON' if self.verbose else 'OFF'}\n")

    def new_conversation(self) -> None:
        self.conversation_id = new_conversation_id()
        print(f"\nStarted conversation {self.conversation_id}\n")

    def show_history(self) -> None:
        print_history(self._run(self.service.history.get(self.conversation_id)))

    def _run(self, coro):
        """Run a coroutine on the CLI loop; Ctrl+C cancels it."""
        task = self.loop.create_task(coro)
        try:
            return self.loop.run_until_complete(task)
        except KeyboardInterrupt:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                self.loop.run_until_complete(task)
            raise

    def _render(self, part: dict) -> None:
        kind = part["type"]
        if kind == "text":
            print(part["text"], end="", flush=True)
        elif kind == "reasoning":
            if self.verbose:
                print(f"\033[2m{part['text']}\033[0m", end="", flush=True)
        elif kind == "tool-call":
            print(f"\n[tool] {part['toolName']}({_short(part['input'])})")
        elif kind == "tool-result":
            print(f"[result] {_short(part['output'])}")
        elif kind == "start-step" and self.verbose:
            print(f"\n── step {part['step']} ──")
        elif kind == "finish":
            usage = part.get("usage")
            if usage and self.verbose:
                print(f"\n(tokens: {usage['totalTokens']})")
        elif kind == "error":
            print(f"\nError: {part['errorText']}")

    async def _exchange(self, query: str) -> None:
        parts = self.service.exchange(self.conversation_id, Message.user(query))
        async with contextlib.aclosing(parts):
            async for part in parts:
                self._render(part)

    def process_query(self, query: str) -> None:
        """Run one exchange and stream it to the terminal."""
        print()
        try:
            self._run(self._exchange(query))
        except KeyboardInterrupt:
            print("\n\nQuery interrupted, nothing was saved.\n")
            return
        print("\n")

    def run(self) -> None:
        """Run the interactive CLI loop."""
        print_banner()

        while True:
            try:
                user_input = input(">>> ").strip()

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    command = user_input.lower()

                    if command in ("/quit", "/exit", "/q"):
                        print("\nGoodbye!\n")
                        break
                    elif command in ("/help", "/h", "/?"):
                        print_banner()
                    elif command == "/tools":
                        print("\nAvailable Tools:")
                        print("─" * 64)
                        print(self.service.registry.get_tools_summary() + "\n")
                    elif command == "/history":
                        self.show_history()
                    elif command == "/new":
                        self.new_conversation()
                    elif command == "/verbose":
                        self.toggle_verbose()
                    else:
                        print(f"\nUnknown command: {user_input}")
                        print("Type /help for available commands.\n")
                else:
                    self.process_query(user_input)

            except KeyboardInterrupt:
                print("\n\nType /quit to exit.\n")
            except EOFError:
                print("\nGoodbye!\n")
                break

    def close(self, *closeables) -> None:
        """Close clients and the event loop."""
        for closeable in closeables:
            if closeable is not None:
                self.loop.run_until_complete(closeable.aclose())
        self.loop.close()


def build_service(weather_service: WeatherService, model: Optional[str] = None) -> ChatService:
    """Build a chat service from the loaded configuration."""
    model_config = config.model
    if model:
        model_config.name = model
    guardrail = None
    if config.guardrail.enabled:
        guardrail = TopicGuardrail(
            keywords=config.guardrail.keywords,
            redirect_messages=config.guardrail.redirect_messages,
        )
    return ChatService(
        app_config=config,
        model_client=OpenAIModelClient(model_config),
        history=InMemoryHistoryStore(
            capacity=config.history.capacity,
            compact_threshold=config.history.compact_threshold,
        ),
        registry=build_default_registry(weather_service=weather_service),
        guardrail=guardrail,
    )


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="TripMate Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                # Start interactive mode
  %(prog)s -v                             # Start with verbose logging
  %(prog)s -q "What's the weather in Lagos?"  # Run a single query

Requires AI_GATEWAY_API_KEY; the weather tool needs OPENWEATHER_API_KEY.
""",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging and show model reasoning",
    )

    parser.add_argument(
        "-q",
        "--query",
        type=str,
        help="Run a single query and exit",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"Model name on the gateway (default: from TRIPMATE_MODEL env or {config.model.name})",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    weather_service = WeatherService(config.tools.weather)
    try:
        service = build_service(weather_service, model=args.model)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        asyncio.run(weather_service.aclose())
        sys.exit(1)

    cli = InteractiveCLI(service, verbose=args.verbose)
    try:
        if args.query:
            cli.process_query(args.query)
        else:
            cli.run()
    finally:
        cli.close(weather_service, service.model_client)


if __name__ == "__main__":
    main()
