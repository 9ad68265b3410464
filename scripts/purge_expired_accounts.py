#!/usr/bin/env python3
"""
Delete expired temporary accounts.

Attendees who join with an event code get a 7-day profile, booth visitors
a 30-day one. Once expired, the profile and its ratings are removed.
"""

import sys
import argparse
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from palate import database as db

console = Console()


def purge(dry_run: bool = False, assume_yes: bool = False) -> int:
    """Count, confirm and delete expired temporary profiles."""
    console.print("\n[bold]🧹 Purging expired temporary accounts[/bold]\n")

    try:
        expired = db.count_expired_accounts()
        console.print(f"[dim]Found {expired} expired accounts[/dim]")

        if expired == 0:
            console.print("[green]✓ Nothing to purge[/green]\n")
            return 0

        if dry_run:
            console.print("[yellow]Dry run: no accounts deleted[/yellow]\n")
            return 0

        if not assume_yes and not Confirm.ask(f"Delete {expired} accounts and their ratings?"):
            console.print("[yellow]Cancelled[/yellow]\n")
            return 0

        deleted = db.purge_expired_accounts()
    except Exception as e:
        console.print(f"[red]✗ Purge failed: {type(e).__name__} - {e}[/red]")
        return 1
    finally:
        db.close_pool()

    console.print(f"[green]✓ Deleted {deleted} expired accounts[/green]\n")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Palate Collectif expired account purge")
    parser.add_argument('--dry-run', action='store_true', help='Only count expired accounts')
    parser.add_argument('--yes', '-y', action='store_true', help='Skip the confirmation prompt')
    args = parser.parse_args()
    sys.exit(purge(dry_run=args.dry_run, assume_yes=args.yes))


if __name__ == "__main__":
    main()
