import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable that controls the CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_list_result(records: List[Any], kind: str = "books") -> None:
    """Print books or users according to the output mode.
    - plain: '<id> - <name>' lines, or 'No <kind> found.'
    - json: array of {id, name}
    - rich: Rich table
    """
    mode = get_output_mode()

    if not records:
        print(f"No {kind} found.")
        return

    if mode == "json":
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title=kind.capitalize(), show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        for r in records:
            table.add_row(str(r.id), r.name)
        _console.print(table)
    else:
        for r in records:
            print(str(r))

def print_book_detail(book: Dict[str, Any]) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book, ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]Name:[/] {book['name']}\n[bold]Score:[/] {book['score']}"
        _console.print(Panel.fit(content, title=f"Book #{book['id']}", border_style="blue"))
    else:
        print(f"{book['id']} - {book['name']}")
        print(f"Score: {book['score']}")

def print_user_detail(user: Dict[str, Any]) -> None:
    """Print a user with the books they hold and the scored returns."""
    mode = get_output_mode()
    past = user["books"]["past"]
    present = user["books"]["present"]

    if mode == "json":
        payload = {
            "id": user["id"],
            "name": user["name"],
            "books": {
                "past": [{"name": p["name"], "userScore": p["user_score"]} for p in past],
                "present": present,
            },
        }
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title=f"{user['name']} (#{user['id']})", header_style="bold cyan")
        table.add_column("Book", style="white")
        table.add_column("Status", style="magenta")
        table.add_column("Score", justify="right")
        for p in present:
            table.add_row(p["name"], "borrowed", "")
        for p in past:
            table.add_row(p["name"], "returned", str(p["user_score"]))
        _console.print(table)
    else:
        print(f"{user['id']} - {user['name']}")
        print("Present: " + (", ".join(p["name"] for p in present) or "-"))
        print("Past: " + (", ".join(f"{p['name']} ({p['user_score']})" for p in past) or "-"))
