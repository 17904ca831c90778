"""Command line entry point for openrouter-kit."""

import argparse
import asyncio
import logging

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from openrouter_kit.api.models import ChatCompletionRequest, ChatMessage
from openrouter_kit.core.llm import OpenRouterError, create_client
from openrouter_kit.settings import AppConfig, get_config

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="openrouter-kit", description="OpenRouter API client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("models", help="List available models")
    subparsers.add_parser("credits", help="Show account credits")

    chat = subparsers.add_parser("chat", help="Send a single chat completion")
    chat.add_argument("prompt", type=str, help="User message")
    chat.add_argument("--model", type=str, default=None, help="Model id (defaults to configuration)")
    chat.add_argument("--system", type=str, default=None, help="System message")
    chat.add_argument("--stream", action="store_true", help="Print tokens as they arrive")
    chat.add_argument("--max-tokens", type=int, dest="max_tokens", default=None, help="Maximum number of tokens")
    chat.add_argument("--temperature", type=float, default=None, help="Generation temperature")
    return parser


def _chat_request(args: argparse.Namespace, config: AppConfig) -> ChatCompletionRequest:
    messages = []
    if args.system:
        messages.append(ChatMessage(role="system", content=args.system))
    messages.append(ChatMessage(role="user", content=args.prompt))
    return ChatCompletionRequest(
        model=args.model or config.openrouter.model,
        messages=messages,
        max_tokens=args.max_tokens if args.max_tokens is not None else config.openrouter.max_tokens,
        temperature=args.temperature if args.temperature is not None else config.openrouter.temperature,
    )


async def run(args: argparse.Namespace, config: AppConfig) -> None:
    async with create_client(config) as client:
        if args.command == "models":
            response = await client.get_available_models()
            table = Table(title="Available models")
            table.add_column("Model")
            table.add_column("Context", justify="right")
            table.add_column("Prompt $/token", justify="right")
            table.add_column("Completion $/token", justify="right")
            for model in response.data:
                table.add_row(
                    model.id,
                    str(model.context_length or "-"),
                    str(model.pricing.prompt),
                    str(model.pricing.completion),
                )
            console.print(table)

        elif args.command == "credits":
            credits = (await client.get_credits()).data
            console.print(f"[bold]Total credits:[/bold] {credits.total_credits:.4f}")
            console.print(f"[bold]Total usage:[/bold] {credits.total_usage:.4f}")
            console.print(f"[bold green]Outstanding:[/bold green] {credits.outstanding_credits:.4f}")

        elif args.command == "chat":
            request = _chat_request(args, config)
            if args.stream:
                async with await client.stream_chat_completion(request) as stream:
                    async for chunk in stream:
                        console.print(chunk.text, end="", soft_wrap=True, markup=False, highlight=False)
                console.print()
            else:
                response = await client.get_chat_completion(request)
                content = response.choices[0].message.content if response.choices else None
                if content:
                    console.print(content, markup=False, highlight=False)
                else:
                    console.print("[dim](empty response)[/dim]")


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""

    args = build_parser().parse_args(argv)
    config = get_config()
    logging.basicConfig(
        level=config.logging.level.upper(),
        encoding="utf-8",
        format="%(asctime)s - %(name)s - %(lineno)d - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    try:
        asyncio.run(run(args, config))
    except OpenRouterError as e:
        console.print(f"[bold red]❌ {escape(str(e))}[/bold red]")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
