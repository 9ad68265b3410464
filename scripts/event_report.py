#!/usr/bin/env python3
"""
Event Report

Prints the analytics of one event (by code) and optionally writes the
per-wine, per-taster and detailed CSV reports.
"""

import sys
import argparse
from pathlib import Path

from rich.console import Console
from rich.table import Table

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from palate import analytics, exports
from palate.constants import Tables
from palate.error_handling import PalateError
from palate.events_repo import get_event_by_code
from palate.ratings_repo import list_ratings_for_wines
from palate.supabase_session import create_supabase_client
from palate.wines_repo import list_event_wines

console = Console()


def print_report(event, report):
    console.print(f"\n[bold]🍷 {event['event_name']}[/bold] [dim]({event['event_code']})[/dim]\n")
    console.print(
        f"Ratings: [bold]{report.total_ratings}[/bold]  "
        f"Tasters: [bold]{report.total_participants}[/bold]  "
        f"Wines: [bold]{report.total_wines}[/bold]  "
        f"Average: [bold]{report.average_rating:.1f}★[/bold]  "
        f"Would buy: [bold]{report.would_buy_percent}%[/bold]\n"
    )

    table = Table(title="Wine rankings")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Wine", style="cyan")
    table.add_column("Producer")
    table.add_column("Avg", justify="right", style="green")
    table.add_column("Ratings", justify="right")
    table.add_column("Would buy", justify="right")

    for position, wine in enumerate(report.wine_rankings, start=1):
        table.add_row(
            str(position),
            wine.wine_name,
            wine.producer or "",
            f"{wine.avg_rating:.1f}",
            str(wine.rating_count),
            f"{wine.would_buy_percent}%",
        )
    console.print(table)

    histogram = "  ".join(
        f"{star}★ {count}" for star, count in zip(range(1, 6), report.rating_distribution)
    )
    console.print(f"\n[bold]Distribution:[/bold] {histogram}")

    if report.most_divisive:
        divisive = report.most_divisive
        console.print(
            f"[bold]Most divisive:[/bold] {divisive.wine_name} "
            f"({divisive.min_rating}★ to {divisive.max_rating}★)"
        )


def write_csvs(sb, event, wines, ratings, output_dir: Path):
    user_ids = sorted({r["user_id"] for r in ratings})
    profiles = {}
    if user_ids:
        res = sb.table(Tables.PROFILES).select("id, display_name, eventbrite_email").in_("id", user_ids).execute()
        profiles = {p["id"]: p for p in res.data or []}
    names = {pid: p.get("display_name") for pid, p in profiles.items()}

    output_dir.mkdir(parents=True, exist_ok=True)
    reports = {
        "wines": exports.wine_report(wines, ratings, names),
        "users": exports.taster_report(wines, ratings, profiles),
        "detailed": exports.detailed_report(wines, ratings, names),
    }
    for kind, df in reports.items():
        path = output_dir / exports.report_filename(event["event_name"], kind)
        df.to_csv(path, index=False)
        console.print(f"[green]✓ Wrote {path}[/green]")


def main():
    parser = argparse.ArgumentParser(description="Palate Collectif event report")
    parser.add_argument('event_code', help='Event code, e.g. WINE24')
    parser.add_argument('--csv', metavar='DIR', type=Path, help='Also write CSV reports to DIR')
    args = parser.parse_args()

    try:
        sb = create_supabase_client()
        event = get_event_by_code(sb, args.event_code, require_active=False)
        wines = list_event_wines(sb, event["id"])
        ratings = list_ratings_for_wines(sb, [w["id"] for w in wines])
    except PalateError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        sys.exit(1)

    print_report(event, analytics.event_analytics(wines, ratings))

    if args.csv:
        write_csvs(sb, event, wines, ratings, args.csv)


if __name__ == "__main__":
    main()
