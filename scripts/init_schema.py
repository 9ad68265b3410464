#!/usr/bin/env python3
"""
Create the Palate Collectif tables in Postgres.

Safe to re-run: every table, constraint and index is created only when
missing. Reads DATABASE_URL from Streamlit secrets or the environment.
"""

import sys
from pathlib import Path

from rich.console import Console

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from palate import database as db

console = Console()


def init_schema():
    """Run the schema DDL against DATABASE_URL."""
    console.print("\n[bold]🗄️  Initializing Palate Collectif schema[/bold]\n")

    try:
        executed = db.init_database()
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        console.print("[yellow]Set DATABASE_URL in .env or .streamlit/secrets.toml[/yellow]")
        return 1
    except Exception as e:
        console.print(f"[red]✗ Schema initialization failed: {type(e).__name__} - {e}[/red]")
        return 1
    finally:
        db.close_pool()

    console.print(f"[green]✓ Schema ready ({executed} statements)[/green]\n")
    return 0


if __name__ == "__main__":
    sys.exit(init_schema())
