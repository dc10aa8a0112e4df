import json
import os
from typing import Any, Dict

from rich.console import Console
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKSNAP_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_details_result(details: Dict[str, Any]) -> None:
    """Print extracted cover details in the current output mode.
    - plain: 'Title: ...', 'Author: ...', 'Confidence: ...' lines
    - json: JSON object
    - rich: Panel
    """
    mode = get_output_mode()
    title = details.get("title") or ""
    author = details.get("author") or "-"
    confidence = float(details.get("confidence") or 0.0)

    if mode == "json":
        print(json.dumps(details, ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]Title:[/] {title}\n[bold]Author:[/] {author}\n[bold]Confidence:[/] {confidence:.2f}"
        _console.print(Panel.fit(content, title="📷 Cover Scan", border_style="blue"))
    else:
        print(f"Title: {title}")
        print(f"Author: {author}")
        print(f"Confidence: {confidence:.2f}")


def print_cover_result(cover: Dict[str, Any]) -> None:
    """Print a cover lookup result in the current output mode."""
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(cover, ensure_ascii=False))
        return

    lines = [f"Source: {cover.get('source')}"]
    if cover.get("coverUrl"):
        lines.append(f"Cover URL: {cover['coverUrl']}")
    if cover.get("description"):
        lines.append(f"Description: {cover['description']}")
    if cover.get("confidence") is not None:
        lines.append(f"Confidence: {cover['confidence']:.2f}")

    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="🖼️  Cover", border_style="green"))
    else:
        for line in lines:
            print(line)
