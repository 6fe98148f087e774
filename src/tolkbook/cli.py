#!/usr/bin/env python3
"""Tolkbook CLI for day-to-day booking operations."""

import argparse

import questionary
from rich.console import Console
from rich.table import Table

from tolkbook.booking import BookingRepository, JobRepository
from tolkbook.booking.models import JobStatus

console = Console()

JOB_COLUMNS = ("id", "status", "from_language", "due", "duration", "immediate", "town")


def jobs_table(jobs: list[dict], title: str) -> Table:
    table = Table(title=title)
    for column in JOB_COLUMNS:
        table.add_column(column)
    for job in jobs:
        table.add_row(*("" if job[c] is None else str(job[c]) for c in JOB_COLUMNS))
    return table


def browse_jobs(status: str | None = None, per_page: int | None = None):
    """Page through jobs, optionally only those with one status."""
    job_repo = JobRepository()
    filters = {"status": status} if status else {}
    page = 1

    while True:
        paginator = job_repo.paginate(per_page=per_page, page=page, **filters)
        if not paginator.items:
            console.print("[red]No jobs found.[/]")
            return

        title = f"Jobs {paginator.first_item}-{paginator.last_item} of {paginator.total}"
        console.print(jobs_table(paginator.items, title))

        choices = []
        if paginator.has_more_pages:
            choices.append("Next page")
        if page > 1:
            choices.append("Previous page")
        choices.append("Done")

        answer = questionary.select("Navigate:", choices=choices).ask()
        if answer == "Next page":
            page += 1
        elif answer == "Previous page":
            page -= 1
        else:
            return


def select_job(status: str | None = None) -> dict | None:
    """Prompt the user to select a job."""
    job_repo = JobRepository()
    jobs = job_repo.find_by(status=status) if status else job_repo.all()
    if not jobs:
        console.print("[red]No jobs found.[/]")
        return None
    return questionary.select(
        "Select a job:",
        choices=[
            questionary.Choice(title=f"#{j['id']} {j['from_language']} ({j['status']})", value=j)
            for j in jobs
        ],
    ).ask()


def show_job():
    """Show one job with its translator."""
    job = select_job()
    if not job:
        return

    booking = BookingRepository().get_booking_with_translator(job["id"])
    translator = booking.pop("translator")
    console.print(jobs_table([booking], f"Job #{booking['id']}"))
    if translator:
        console.print(f"Translator: [bold]{translator['name']}[/] <{translator['email']}>")
    else:
        console.print("[dim]No translator assigned.[/]")


def resend(channel: str):
    """Resend push or SMS notifications for a pending job."""
    job = select_job(status=JobStatus.PENDING)
    if not job:
        return

    console.print(f"[yellow]Will resend {channel} notifications for job #{job['id']}.[/]")
    if not questionary.confirm("Proceed?").ask():
        console.print("[dim]Cancelled.[/]")
        return

    repo = BookingRepository()
    if channel == "sms":
        queued = repo.resend_sms_notifications({"jobid": job["id"]})
    else:
        queued = repo.resend_notifications({"jobid": job["id"]})
    console.print(f"[green]Queued {channel} notifications ({queued}).[/]")


def reopen_job():
    """Reopen a finished or assigned job so translators can take it again."""
    job = select_job()
    if not job:
        return
    if job["status"] == JobStatus.PENDING:
        console.print("[red]That job is already open.[/]")
        return

    console.print(f"[yellow]Will reopen job #{job['id']} (currently {job['status']}).[/]")
    if not questionary.confirm("Proceed with these changes?").ask():
        console.print("[dim]Cancelled.[/]")
        return

    result = BookingRepository().reopen_job({"job_id": job["id"]})
    console.print(f"[green]Job #{result['job']['id']} is {result['job']['status']} again.[/]")


def main():
    parser = argparse.ArgumentParser(description="Tolkbook CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    jobs_parser = subparsers.add_parser("jobs", help="Browse jobs page by page")
    jobs_parser.add_argument("--status", help="Only jobs with this status")
    jobs_parser.add_argument("--per-page", type=int, help="Jobs per page")
    subparsers.add_parser("show", help="Show a job and its translator")
    subparsers.add_parser("resend-push", help="Resend push notifications for a job")
    subparsers.add_parser("resend-sms", help="Resend SMS notifications for a job")
    subparsers.add_parser("reopen", help="Reopen a job")

    args = parser.parse_args()

    if args.command == "jobs":
        browse_jobs(status=args.status, per_page=args.per_page)
    elif args.command == "show":
        show_job()
    elif args.command == "resend-push":
        resend("push")
    elif args.command == "resend-sms":
        resend("sms")
    elif args.command == "reopen":
        reopen_job()


if __name__ == "__main__":
    main()
