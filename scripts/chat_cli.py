#!/usr/bin/env python3
"""Interactive chat CLI for the Rapport CRM assistant."""

import argparse
import json

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

DEMO_CONTACTS = [
    ("Alex Rivera", "Northwind, Product Lead", "work, product"),
    ("Sam Okafor", "Cooper Union, Student", "school"),
]

STATUS_STYLES = {"completed": "green", "cancelled": "yellow", "failed": "red"}


class ChatCLI:
    """Terminal front end for the /conversation endpoint."""

    def __init__(self, base_url: str, provider: str | None = None, owner_id: str = "local"):
        self.base_url = base_url.rstrip("/")
        self.provider = provider
        self.owner_id = owner_id
        self.session_id: str | None = None
        self.show_tools = True
        self.console = Console()
        self.client = httpx.Client(timeout=120.0)

    def start(self) -> None:
        """Run the read-eval-print loop until the user quits."""
        self.console.print(
            Panel.fit(
                "[bold blue]Rapport CRM Assistant[/bold blue]\n"
                "Ask about your contacts, log interactions or create reminders.\n"
                "Commands: /help, /new, /provider <name>, /tools, /quit",
                border_style="blue",
            )
        )

        if not self._check_health():
            self.console.print(f"[red]Cannot reach the service at {self.base_url}.[/red]")
            return

        self._show_demo_contacts()

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]").strip()
                if not user_input:
                    continue
                if user_input.startswith("/"):
                    if not self._handle_command(user_input):
                        break
                    continue

                data = self._send_message(user_input)
                if data:
                    self._display_response(data)
        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _handle_command(self, command: str) -> bool:
        """Apply a slash command. Returns False when the CLI should exit."""
        name, _, argument = command.partition(" ")
        name = name.lower()

        if name in ("/quit", "/exit"):
            return False
        if name == "/help":
            self._show_help()
        elif name == "/new":
            self.session_id = None
            self.console.print("[yellow]Started a new session[/yellow]")
        elif name == "/provider":
            if argument.strip() not in ("openai", "gemini"):
                self.console.print("[red]Usage: /provider openai|gemini[/red]")
            else:
                self.provider = argument.strip()
                self.session_id = None
                self.console.print(f"[yellow]Using {self.provider}; started a new session[/yellow]")
        elif name == "/tools":
            self.show_tools = not self.show_tools
            self.console.print(f"[yellow]Tool details {'shown' if self.show_tools else 'hidden'}[/yellow]")
        else:
            self.console.print(f"[red]Unknown command: {name}[/red]")
        return True

    def _check_health(self) -> bool:
        try:
            return self.client.get(f"{self.base_url}/health").status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> dict | None:
        payload: dict[str, str] = {"message": message, "owner_id": self.owner_id}
        if self.session_id:
            payload["session_id"] = self.session_id
        elif self.provider:
            payload["provider"] = self.provider

        try:
            with self.console.status("[dim]Thinking...[/dim]"):
                response = self.client.post(f"{self.base_url}/conversation", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if response.status_code != 200:
            self.console.print(f"[red]API error {response.status_code}: {response.text}[/red]")
            return None

        data = response.json()
        self.session_id = data.get("session_id")
        return data

    def _display_response(self, data: dict) -> None:
        if self.show_tools and data.get("tool_calls"):
            self._display_tool_activity(data["tool_calls"], data.get("tool_results", []))

        status = data.get("status", "completed")
        text = data.get("response") or "_(no reply)_"
        if data.get("error"):
            text += f"\n\n**Error:** {data['error']}"

        self.console.print(
            Panel(
                Markdown(text),
                title=f"[bold green]Assistant[/bold green] [dim]({status})[/dim]",
                border_style=STATUS_STYLES.get(status, "green"),
                padding=(1, 2),
            )
        )

    def _display_tool_activity(self, calls: list[dict], results: list[dict]) -> None:
        outcomes = {result["tool_call_id"]: result for result in results}

        table = Table(title="Tool calls", show_lines=False)
        table.add_column("Tool", style="cyan")
        table.add_column("Arguments")
        table.add_column("Outcome")
        for call in calls:
            result = outcomes.get(call["id"])
            if result is None:
                outcome = "[yellow]not run[/yellow]"
            elif result["success"]:
                outcome = "[green]ok[/green]"
            else:
                outcome = f"[red]{result.get('error')}[/red]"
            table.add_row(call["name"], json.dumps(call.get("arguments", {}))[:80], outcome)

        self.console.print(table)

    def _show_demo_contacts(self) -> None:
        table = Table(title="Demo contacts (start the server with RAPPORT_DEMO_DATA=local)")
        table.add_column("Name", style="bold")
        table.add_column("Company")
        table.add_column("Tags", style="dim")
        for row in DEMO_CONTACTS:
            table.add_row(*row)
        self.console.print(table)

    def _show_help(self) -> None:
        help_text = """
[bold]Commands:[/bold]
• /help - Show this help message
• /new - Start a new session
• /provider openai|gemini - Switch provider (starts a new session)
• /tools - Toggle tool call details
• /quit or /exit - Exit the chat

[bold]Things to try:[/bold]
1. "Who do I know at Northwind?"
2. "I had lunch with Sam yesterday, we talked about internships"
3. "Remind me to call Alex next Friday"
4. "Add Jordan Lee, a designer Alex introduced me to"
5. "What tasks are overdue?"
        """
        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("base_url", nargs="?", default="http://localhost:8000")
    parser.add_argument("--provider", choices=["openai", "gemini"])
    parser.add_argument("--owner", default="local", help="Owner ID of the CRM data")
    args = parser.parse_args()

    ChatCLI(args.base_url, provider=args.provider, owner_id=args.owner).start()


if __name__ == "__main__":
    main()
