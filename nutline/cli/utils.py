import asyncio
import functools
import sys
from rich.console import Console

from nutline.nut.errors import NUTError

console = Console()

def handle_async_command(async_func):
    """Decorator to handle async CLI commands."""
    @functools.wraps(async_func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(async_func(*args, **kwargs))
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except NUTError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper

def handle_nut_errors(func):
    """Decorator that reports NUT errors of sync CLI commands and exits with 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NUTError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper
