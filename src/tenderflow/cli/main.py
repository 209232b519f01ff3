"""
Tenderflow CLI

Command-line interface for running tenders and bids against a local
database. Every mutating command acts as the actor given by --actor,
--company and --role.

Usage:
    tenderflow init --db tenders.db
    tenderflow tender create --title "Road resurfacing" --description ... \\
        --category works --estimated-value 100000 --end-date 2026-12-31 \\
        --actor alice --company acme --role COMPANY_ADMIN
    tenderflow tender publish --id <tender_id> --actor alice --company acme --role COMPANY_ADMIN
    tenderflow bid draft --tender <tender_id> --amount 65000 --delivery-days 30 ...
    tenderflow bid submit --id <bid_id> --actor bob --company buildco
    tenderflow analyze --tender <tender_id> --actor alice --company acme --role COMPANY_ADMIN
    tenderflow sweep --every 3600
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from tenderflow.evaluation.narrative import build_summarizer
from tenderflow.flow import Tenderflow
from tenderflow.kernel.actors import Actor, Role
from tenderflow.kernel.errors import TenderflowError
from tenderflow.kernel.logging import (
    configure_logging,
    generate_correlation_id,
    set_correlation_id,
)
from tenderflow.kernel.policy import TenderflowSettings
from tenderflow.kernel.scheduler import PeriodicRunner

settings = TenderflowSettings.from_env()

# Logs go to stderr (keeps stdout clean for --json output)
configure_logging(json_output=settings.is_production, log_level=settings.log_level)

app = typer.Typer(
    name="tenderflow",
    help="Tenderflow - tender and bid workflow",
    add_completion=False,
)

tender_app = typer.Typer(help="Tender lifecycle commands")
bid_app = typer.Typer(help="Bid lifecycle commands")

app.add_typer(tender_app, name="tender")
app.add_typer(bid_app, name="bid")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
ActorOption = Annotated[str, typer.Option("--actor", help="Acting user ID")]
CompanyOption = Annotated[
    Optional[str], typer.Option("--company", help="Company the actor acts for")
]
RoleOption = Annotated[Role, typer.Option("--role", help="Actor role")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


@app.callback()
def main_callback() -> None:
    """Tag every command's logs with one correlation ID"""
    set_correlation_id(generate_correlation_id())


def get_flow(db_path: Optional[Path] = None) -> Tenderflow:
    """Get Tenderflow instance for an existing database"""
    db = db_path or settings.db_path
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'tenderflow init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    summarizer = build_summarizer(
        settings.openai_api_key, settings.narrative_model, settings.narrative_timeout
    )
    return Tenderflow(str(db), summarizer=summarizer)


@contextmanager
def cli_errors() -> Iterator[None]:
    """Report workflow errors as 'Error: ...' and exit 1"""
    try:
        yield
    except TenderflowError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON option: {e}", err=True)
        raise typer.Exit(1) from e
    except InvalidOperation as e:
        typer.echo("Error: Invalid amount", err=True)
        raise typer.Exit(1) from e


def make_actor(actor_id: str, company: Optional[str], role: Role) -> Actor:
    return Actor(actor_id=actor_id, company_id=company, role=role)


def echo_json(model: Any) -> None:
    typer.echo(json.dumps(model.model_dump(mode="json"), indent=2))


def given(**options: Any) -> dict[str, Any]:
    """Drop options the user didn't pass (keeps patches partial)"""
    return {name: value for name, value in options.items() if value is not None}


def echo_tender(tender: Any, headline: str) -> None:
    typer.echo(f"✓ {headline}: {tender.tender_id}")
    typer.echo(f"  Title: {tender.title}")
    typer.echo(f"  Status: {tender.status.value}")
    if tender.end_date:
        typer.echo(f"  Ends: {tender.end_date.isoformat()}")


def echo_bid(bid: Any, headline: str) -> None:
    typer.echo(f"✓ {headline}: {bid.bid_id}")
    typer.echo(f"  Tender: {bid.tender_id}")
    typer.echo(f"  Company: {bid.bidder_company}")
    typer.echo(f"  Status: {bid.status.value}")
    if bid.anomaly_score:
        typer.echo(f"  Anomaly score: {bid.anomaly_score} ({bid.ai_notes})")


# Initialization command


@app.command()
def init(
    db: Annotated[Path, typer.Option(help="Database path")] = settings.db_path,
) -> None:
    """Initialize a new Tenderflow database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    Tenderflow(str(db))
    typer.echo(f"✓ Initialized Tenderflow database: {db}")


# Tender commands


@tender_app.command("create")
def tender_create(
    title: Annotated[str, typer.Option("--title", help="Tender title")],
    description: Annotated[str, typer.Option("--description", help="Tender description")],
    category: Annotated[str, typer.Option("--category", help="Tender category")],
    actor: ActorOption,
    tags: Annotated[
        Optional[str], typer.Option("--tags", help="Tags (comma-separated)")
    ] = None,
    estimated_value: Annotated[
        Optional[str], typer.Option("--estimated-value", help="Estimated contract value")
    ] = None,
    emd_amount: Annotated[
        Optional[str], typer.Option("--emd-amount", help="Earnest money deposit")
    ] = None,
    threshold: Annotated[
        Optional[float],
        typer.Option("--abnormally-low-threshold", help="Abnormally-low bid threshold (%)"),
    ] = None,
    start_date: Annotated[
        Optional[datetime], typer.Option("--start-date", help="Bidding opens (ISO date)")
    ] = None,
    end_date: Annotated[
        Optional[datetime], typer.Option("--end-date", help="Bidding deadline (ISO date)")
    ] = None,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Create a new DRAFT tender"""
    flow = get_flow(db)

    with cli_errors():
        tender = flow.create_tender(
            make_actor(actor, company, role),
            title=title,
            description=description,
            category=category,
            **given(
                tags=[tag.strip() for tag in tags.split(",") if tag.strip()] if tags else None,
                estimated_value=Decimal(estimated_value) if estimated_value else None,
                emd_amount=Decimal(emd_amount) if emd_amount else None,
                abnormally_low_bid_threshold=threshold,
                start_date=start_date,
                end_date=end_date,
            ),
        )

    echo_tender(tender, "Created tender")


@tender_app.command("update")
def tender_update(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    actor: ActorOption,
    title: Annotated[Optional[str], typer.Option("--title", help="Tender title")] = None,
    description: Annotated[
        Optional[str], typer.Option("--description", help="Tender description")
    ] = None,
    category: Annotated[Optional[str], typer.Option("--category", help="Tender category")] = None,
    estimated_value: Annotated[
        Optional[str], typer.Option("--estimated-value", help="Estimated contract value")
    ] = None,
    end_date: Annotated[
        Optional[datetime], typer.Option("--end-date", help="Bidding deadline (ISO date)")
    ] = None,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Update a DRAFT tender"""
    flow = get_flow(db)

    with cli_errors():
        tender = flow.update_tender(
            tender_id,
            make_actor(actor, company, role),
            **given(
                title=title,
                description=description,
                category=category,
                estimated_value=Decimal(estimated_value) if estimated_value else None,
                end_date=end_date,
            ),
        )

    echo_tender(tender, "Updated tender")


@tender_app.command("publish")
def tender_publish(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Open tender for bidding"""
    flow = get_flow(db)

    with cli_errors():
        tender = flow.publish_tender(tender_id, make_actor(actor, company, role))

    echo_tender(tender, "Published tender")


@tender_app.command("close")
def tender_close(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Close tender to further bids"""
    flow = get_flow(db)

    with cli_errors():
        tender = flow.close_tender(tender_id, make_actor(actor, company, role))

    echo_tender(tender, "Closed tender")


@tender_app.command("award")
def tender_award(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    bid_id: Annotated[str, typer.Option("--bid", help="Winning bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Award a CLOSED tender to one bid (all other pending bids are rejected)"""
    flow = get_flow(db)

    with cli_errors():
        tender = flow.award_tender(tender_id, bid_id, make_actor(actor, company, role))

    echo_tender(tender, "Awarded tender")
    typer.echo(f"  Winning bid: {tender.awarded_bid_id}")


@tender_app.command("show")
def tender_show(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show tender details"""
    flow = get_flow(db)

    with cli_errors():
        tender = flow.get_tender(tender_id)

    if json_output:
        echo_json(tender)
        return

    typer.echo(f"Tender: {tender.tender_id}")
    typer.echo(f"  Title: {tender.title}")
    typer.echo(f"  Category: {tender.category}")
    typer.echo(f"  Owner: {tender.owner_company}")
    typer.echo(f"  Status: {tender.status.value}")
    typer.echo(f"  Estimated value: {tender.estimated_value if tender.estimated_value is not None else 'N/A'}")
    typer.echo(f"  Ends: {tender.end_date.isoformat() if tender.end_date else 'N/A'}")
    typer.echo(f"  Bids received: {len(tender.bid_ids)}")
    if tender.awarded_bid_id:
        typer.echo(f"  Awarded to bid: {tender.awarded_bid_id}")


@tender_app.command("list")
def tender_list(
    status: Annotated[
        Optional[str], typer.Option("--status", help="Filter by status")
    ] = None,
    owner: Annotated[
        Optional[str], typer.Option("--owner", help="Filter by owner company")
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List tenders"""
    flow = get_flow(db)

    try:
        tenders = flow.list_tenders(status=status.upper() if status else None, owner_company=owner)
    except ValueError as e:
        typer.echo(f"Error: Unknown status: {status}", err=True)
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps([t.model_dump(mode="json") for t in tenders], indent=2))
        return

    if not tenders:
        typer.echo("No tenders found")
        return

    typer.echo(f"Tenders ({len(tenders)}):")
    for tender in tenders:
        typer.echo(f"  {tender.tender_id}: {tender.title} [{tender.status.value}]")


# Bid commands


@bid_app.command("draft")
def bid_draft(
    tender_id: Annotated[str, typer.Option("--tender", help="Tender ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    amount: Annotated[Optional[str], typer.Option("--amount", help="Quoted amount")] = None,
    delivery_days: Annotated[
        Optional[int], typer.Option("--delivery-days", help="Delivery timeline in days")
    ] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes to the buyer")] = None,
    technical_docs: Annotated[
        Optional[str],
        typer.Option("--technical-docs", help='Technical envelope (JSON: [{"url","id","name"}])'),
    ] = None,
    financial_docs: Annotated[
        Optional[str],
        typer.Option("--financial-docs", help="Financial envelope (JSON, same shape)"),
    ] = None,
    emd: Annotated[
        Optional[str],
        typer.Option("--emd", help='EMD proof (JSON: {"transaction_id","payment_mode","receipt"})'),
    ] = None,
    role: RoleOption = Role.BIDDER,
    db: DbOption = None,
) -> None:
    """Start a DRAFT bid on a PUBLISHED tender"""
    flow = get_flow(db)

    with cli_errors():
        bid = flow.create_bid_draft(
            tender_id,
            make_actor(actor, company, role),
            **given(
                amount=Decimal(amount) if amount else None,
                delivery_days=delivery_days,
                notes=notes,
                technical_docs=json.loads(technical_docs) if technical_docs else None,
                financial_docs=json.loads(financial_docs) if financial_docs else None,
                emd_payment_proof=json.loads(emd) if emd else None,
            ),
        )

    echo_bid(bid, "Created bid draft")


@bid_app.command("update")
def bid_update(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    amount: Annotated[Optional[str], typer.Option("--amount", help="Quoted amount")] = None,
    delivery_days: Annotated[
        Optional[int], typer.Option("--delivery-days", help="Delivery timeline in days")
    ] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes to the buyer")] = None,
    emd_transaction_id: Annotated[
        Optional[str], typer.Option("--emd-transaction-id", help="EMD transaction ID")
    ] = None,
    emd_payment_mode: Annotated[
        Optional[str], typer.Option("--emd-payment-mode", help="EMD payment mode")
    ] = None,
    emd_receipt: Annotated[
        Optional[str], typer.Option("--emd-receipt", help="EMD receipt document (JSON)")
    ] = None,
    keep_technical: Annotated[
        Optional[str],
        typer.Option("--keep-technical", help="Technical doc IDs to keep (comma-separated)"),
    ] = None,
    keep_financial: Annotated[
        Optional[str],
        typer.Option("--keep-financial", help="Financial doc IDs to keep (comma-separated)"),
    ] = None,
    add_technical: Annotated[
        Optional[str], typer.Option("--add-technical", help="Technical docs to add (JSON)")
    ] = None,
    add_financial: Annotated[
        Optional[str], typer.Option("--add-financial", help="Financial docs to add (JSON)")
    ] = None,
    role: RoleOption = Role.BIDDER,
    db: DbOption = None,
) -> None:
    """Update a DRAFT bid"""
    flow = get_flow(db)

    def id_list(raw: Optional[str]) -> Optional[list[str]]:
        if raw is None:
            return None
        return [doc_id.strip() for doc_id in raw.split(",") if doc_id.strip()]

    with cli_errors():
        bid = flow.update_bid_draft(
            bid_id,
            make_actor(actor, company, role),
            **given(
                amount=Decimal(amount) if amount else None,
                delivery_days=delivery_days,
                notes=notes,
                emd_transaction_id=emd_transaction_id,
                emd_payment_mode=emd_payment_mode,
                emd_receipt=json.loads(emd_receipt) if emd_receipt else None,
                kept_technical_doc_ids=id_list(keep_technical),
                kept_financial_doc_ids=id_list(keep_financial),
                new_technical_docs=json.loads(add_technical) if add_technical else None,
                new_financial_docs=json.loads(add_financial) if add_financial else None,
            ),
        )

    echo_bid(bid, "Updated bid draft")
    typer.echo(f"  Technical docs: {len(bid.technical_docs)}")
    typer.echo(f"  Financial docs: {len(bid.financial_docs)}")


@bid_app.command("review")
def bid_review(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.BIDDER,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Check a DRAFT bid's readiness before submitting"""
    flow = get_flow(db)

    with cli_errors():
        review = flow.pre_submit_review(bid_id, make_actor(actor, company, role))

    if json_output:
        echo_json(review)
        return

    typer.echo(f"Readiness: {review.readiness_score}/100")
    for item in review.checklist:
        mark = "✓" if item.completed else "✗"
        typer.echo(f"  {mark} {item.label}")
    if review.warnings:
        typer.echo("\nWarnings:")
        for warning in review.warnings:
            typer.echo(f"  - {warning}")
    if review.next_actions:
        typer.echo("\nNext actions:")
        for action in review.next_actions:
            typer.echo(f"  - {action}")
    typer.echo(f"\n{review.summary}")


@bid_app.command("submit")
def bid_submit(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.BIDDER,
    db: DbOption = None,
) -> None:
    """Submit a DRAFT bid"""
    flow = get_flow(db)

    with cli_errors():
        bid = flow.submit_bid(bid_id, make_actor(actor, company, role))

    echo_bid(bid, "Submitted bid")


@bid_app.command("withdraw")
def bid_withdraw(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    reason: Annotated[Optional[str], typer.Option("--reason", help="Withdrawal reason")] = None,
    role: RoleOption = Role.BIDDER,
    db: DbOption = None,
) -> None:
    """Withdraw a bid (the company cannot bid on this tender again)"""
    flow = get_flow(db)

    with cli_errors():
        bid = flow.withdraw_bid(bid_id, make_actor(actor, company, role), reason=reason)

    echo_bid(bid, "Withdrew bid")


@bid_app.command("delete")
def bid_delete(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.BIDDER,
    db: DbOption = None,
) -> None:
    """Discard a DRAFT bid"""
    flow = get_flow(db)

    with cli_errors():
        flow.delete_bid_draft(bid_id, make_actor(actor, company, role))

    typer.echo(f"✓ Deleted bid draft: {bid_id}")


@bid_app.command("reject")
def bid_reject(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    reason: Annotated[Optional[str], typer.Option("--reason", help="Rejection reason")] = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Reject a pending bid"""
    flow = get_flow(db)

    with cli_errors():
        bid = flow.reject_bid(bid_id, make_actor(actor, company, role), reason=reason)

    echo_bid(bid, "Rejected bid")


@bid_app.command("hold")
def bid_hold(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    db: DbOption = None,
) -> None:
    """Place a SUBMITTED bid under review"""
    flow = get_flow(db)

    with cli_errors():
        bid = flow.mark_bid_under_review(bid_id, make_actor(actor, company, role))

    echo_bid(bid, "Bid under review")


@bid_app.command("show")
def bid_show(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show bid details"""
    flow = get_flow(db)

    with cli_errors():
        bid = flow.get_bid(bid_id)

    if json_output:
        echo_json(bid)
        return

    typer.echo(f"Bid: {bid.bid_id}")
    typer.echo(f"  Tender: {bid.tender_id}")
    typer.echo(f"  Company: {bid.bidder_company}")
    typer.echo(f"  Status: {bid.status.value}")
    typer.echo(f"  Amount: {bid.amount if bid.amount is not None else 'N/A'}")
    typer.echo(f"  Delivery days: {bid.delivery_days if bid.delivery_days is not None else 'N/A'}")
    typer.echo(f"  Technical docs: {len(bid.technical_docs)}")
    typer.echo(f"  Financial docs: {len(bid.financial_docs)}")
    if bid.rejection_reason:
        typer.echo(f"  Rejection reason: {bid.rejection_reason}")


@bid_app.command("list")
def bid_list(
    tender_id: Annotated[Optional[str], typer.Option("--tender", help="Tender ID")] = None,
    company: Annotated[Optional[str], typer.Option("--company", help="Bidder company")] = None,
    db: DbOption = None,
) -> None:
    """List bids of a tender and/or a company"""
    flow = get_flow(db)
    bids = flow.list_bids(tender_id=tender_id, company_id=company)

    if not bids:
        typer.echo("No bids found")
        return

    typer.echo(f"Bids ({len(bids)}):")
    for bid in bids:
        typer.echo(f"  {bid.bid_id}: {bid.bidder_company} [{bid.status.value}]")


# Evaluation


@app.command()
def analyze(
    tender_id: Annotated[str, typer.Option("--tender", help="Tender ID")],
    actor: ActorOption,
    company: CompanyOption = None,
    role: RoleOption = Role.TENDER_POSTER,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Rank the tender's submitted bids"""
    flow = get_flow(db)

    with cli_errors():
        report = flow.analyze_bids(tender_id, make_actor(actor, company, role))

    if json_output:
        echo_json(report)
        return

    typer.echo(f"Evaluation of tender {report.tender_id}")
    typer.echo(f"  {report.summary}")
    if report.ranking:
        typer.echo("\nRanking:")
        for entry in report.ranking:
            typer.echo(f"  {entry.position}. {entry.bidder_company} ({entry.bid_id}): {entry.reason}")
    if report.risks:
        typer.echo("\nRisks:")
        for risk in report.risks:
            typer.echo(f"  [{risk.severity.value}] {risk.bidder_company}: {risk.risk}")
    stats = report.statistics
    if stats.bids_count:
        typer.echo("\nStatistics:")
        typer.echo(f"  Bids: {stats.bids_count}")
        typer.echo(f"  Average: {stats.average_bid}  Median: {stats.median_bid}")
        typer.echo(f"  Range: {stats.range_bid} ({stats.min_bid} - {stats.max_bid})")
    typer.echo(f"\nRecommendation: {report.recommendation}")
    if report.fallback_reason:
        typer.echo(f"  (narrative unavailable: {report.fallback_reason})")


# Background jobs


@app.command()
def sweep(
    every: Annotated[
        Optional[int],
        typer.Option("--every", help="Repeat every N seconds (runs once if omitted)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Expire PUBLISHED tenders past their end date"""
    flow = get_flow(db)

    if every is None:
        with cli_errors():
            result = flow.run_expiry_sweep()
        typer.echo(f"✓ Sweep completed at {result.swept_at.isoformat()}")
        typer.echo(f"  Expired tenders: {len(result.expired_tender_ids)}")
        typer.echo(f"  Rejected bids: {len(result.rejected_bid_ids)}")
        if result.skipped_tender_ids:
            typer.echo(f"  Skipped (changed concurrently): {len(result.skipped_tender_ids)}")
        return

    runner = PeriodicRunner(flow.run_expiry_sweep, interval_seconds=every)
    typer.echo(f"Running expiry sweep every {every}s (Ctrl+C to stop)")
    runner.start()
    try:
        while runner.running:
            runner.wait(1.0)
    except KeyboardInterrupt:
        typer.echo("Stopping...")
    finally:
        runner.stop(timeout=5.0)


@app.command("serve-health")
def serve_health(
    port: Annotated[int, typer.Option("--port", help="Port to listen on")] = 8080,
    with_sweeper: Annotated[
        bool, typer.Option("--with-sweeper", help="Also run the periodic expiry sweep")
    ] = False,
    db: DbOption = None,
) -> None:
    """Serve health endpoints (optionally with the expiry sweep running)"""
    from tenderflow.health_server import initialize_health_server, run_health_server
    from tenderflow.kernel.metrics import start_metrics_server

    flow = get_flow(db)
    sweeper = None
    if with_sweeper:
        sweeper = PeriodicRunner(
            flow.run_expiry_sweep, interval_seconds=settings.sweep_interval_seconds
        )
        sweeper.start()
    if settings.metrics_port:
        start_metrics_server(settings.metrics_port)

    initialize_health_server(flow.sqlite_path, flow=flow, sweeper=sweeper)
    try:
        run_health_server(port=port)
    finally:
        if sweeper:
            sweeper.stop(timeout=5.0)


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
