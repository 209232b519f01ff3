"""
CLI integration tests

Runs the tender and bid commands end to end against a temporary database
with Typer's CliRunner: init, tender lifecycle, bidding, analysis, sweep,
and the exit codes of failing commands.

Fun fact: The first command-line interface (CLI) was created in 1964 for the Dartmouth Time Sharing System.
It revolutionized computing by allowing users to interact with computers through text commands!
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tenderflow.cli.main import app

BUYER = ["--actor", "alice", "--company", "acme-buyer", "--role", "COMPANY_ADMIN"]
BIDDER_A = ["--actor", "bob", "--company", "alpha-works"]
BIDDER_B = ["--actor", "carol", "--company", "beta-build"]


def doc(doc_id: str) -> dict[str, str]:
    return {"url": f"https://files.example.org/{doc_id}.pdf", "id": doc_id, "name": f"{doc_id}.pdf"}


def extract_id(output: str, headline: str) -> str:
    """Pull the id out of a '✓ <headline>: <id>' line"""
    prefix = f"✓ {headline}: "
    for line in output.splitlines():
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    raise AssertionError(f"No '{headline}' line in output:\n{output}")


@pytest.fixture
def runner():
    """Typer CLI test runner"""
    return CliRunner()


@pytest.fixture
def db(runner, tmp_path: Path) -> str:
    """Initialized database path"""
    db_path = tmp_path / "cli.db"
    result = runner.invoke(app, ["init", "--db", str(db_path)])
    assert result.exit_code == 0
    return str(db_path)


@pytest.fixture
def invoke(runner, db):
    """Run a command against the test database"""

    def run(*args: str):
        return runner.invoke(app, [*args, "--db", db])

    return run


@pytest.fixture
def tender_id(invoke) -> str:
    """PUBLISHED tender (estimate 100000) owned by acme-buyer"""
    result = invoke(
        "tender", "create",
        "--title", "Road resurfacing",
        "--description", "Resurface the ring road",
        "--category", "works",
        "--tags", "roads, asphalt",
        "--estimated-value", "100000",
        "--end-date", "2099-12-31",
        *BUYER,
    )
    assert result.exit_code == 0, result.output
    created = extract_id(result.output, "Created tender")

    result = invoke("tender", "publish", "--id", created, *BUYER)
    assert result.exit_code == 0, result.output
    return created


def submit_bid(invoke, tender_id: str, bidder: list[str], amount: str, days: int, suffix: str) -> str:
    result = invoke(
        "bid", "draft",
        "--tender", tender_id,
        "--amount", amount,
        "--delivery-days", str(days),
        "--technical-docs", json.dumps([doc(f"tech-{suffix}")]),
        "--financial-docs", json.dumps([doc(f"fin-{suffix}")]),
        "--emd", json.dumps(
            {"transaction_id": f"TXN-{suffix}", "payment_mode": "NEFT", "receipt": doc(f"emd-{suffix}")}
        ),
        *bidder,
    )
    assert result.exit_code == 0, result.output
    bid_id = extract_id(result.output, "Created bid draft")

    result = invoke("bid", "submit", "--id", bid_id, *bidder)
    assert result.exit_code == 0, result.output
    return bid_id


# =============================================================================
# Initialization Tests
# =============================================================================


def test_init_creates_database(runner, tmp_path: Path) -> None:
    db_path = tmp_path / "test.db"

    result = runner.invoke(app, ["init", "--db", str(db_path)])

    assert result.exit_code == 0
    assert db_path.exists()
    assert "Initialized Tenderflow database" in result.output


def test_init_with_existing_database(runner, db) -> None:
    result = runner.invoke(app, ["init", "--db", db])

    assert result.exit_code == 1


def test_command_without_database(runner, tmp_path: Path) -> None:
    result = runner.invoke(app, ["tender", "list", "--db", str(tmp_path / "missing.db")])

    assert result.exit_code == 1
    assert "Database not found" in result.output


# =============================================================================
# Tender Command Tests
# =============================================================================


def test_tender_create_and_publish(invoke, tender_id: str) -> None:
    result = invoke("tender", "show", "--id", tender_id, "--json")

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["status"] == "PUBLISHED"
    assert data["owner_company"] == "acme-buyer"
    assert data["tags"] == ["roads", "asphalt"]


def test_tender_update_draft(invoke) -> None:
    result = invoke(
        "tender", "create", "--title", "T", "--description", "D", "--category", "goods", *BUYER
    )
    created = extract_id(result.output, "Created tender")

    result = invoke("tender", "update", "--id", created, "--title", "Office chairs", *BUYER)

    assert result.exit_code == 0
    assert "Title: Office chairs" in result.output


def test_publish_incomplete_tender_fails(invoke) -> None:
    result = invoke(
        "tender", "create", "--title", "T", "--description", "D", "--category", "goods", *BUYER
    )
    created = extract_id(result.output, "Created tender")

    result = invoke("tender", "publish", "--id", created, *BUYER)

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "end_date is required" in result.output


def test_bidder_cannot_create_tender(invoke) -> None:
    result = invoke(
        "tender", "create", "--title", "T", "--description", "D", "--category", "goods",
        "--role", "BIDDER", "--actor", "bob", "--company", "alpha-works",
    )

    assert result.exit_code == 1
    assert "not allowed" in result.output


def test_invalid_estimated_value(invoke) -> None:
    result = invoke(
        "tender", "create", "--title", "T", "--description", "D", "--category", "goods",
        "--estimated-value", "lots", *BUYER,
    )

    assert result.exit_code == 1
    assert "Error: Invalid amount" in result.output


def test_tender_list(invoke, tender_id: str) -> None:
    result = invoke("tender", "list", "--status", "published")

    assert result.exit_code == 0
    assert "Tenders (1):" in result.output
    assert tender_id in result.output

    result = invoke("tender", "list", "--status", "bogus")
    assert result.exit_code == 1


# =============================================================================
# Bid Command Tests
# =============================================================================


def test_bid_draft_review_and_submit(invoke, tender_id: str) -> None:
    result = invoke("bid", "draft", "--tender", tender_id, "--amount", "90000", *BIDDER_A)
    assert result.exit_code == 0, result.output
    bid_id = extract_id(result.output, "Created bid draft")

    result = invoke("bid", "review", "--id", bid_id, *BIDDER_A)
    assert result.exit_code == 0
    assert "Readiness: 20/100" in result.output
    assert "Bid needs fixes before successful submission." in result.output

    result = invoke("bid", "submit", "--id", bid_id, *BIDDER_A)
    assert result.exit_code == 1
    assert "technical envelope is empty" in result.output

    result = invoke(
        "bid", "update", "--id", bid_id,
        "--delivery-days", "30",
        "--add-technical", json.dumps([doc("tech-1")]),
        "--add-financial", json.dumps([doc("fin-1")]),
        "--emd-receipt", json.dumps(doc("emd-1")),
        *BIDDER_A,
    )
    assert result.exit_code == 0, result.output

    result = invoke("bid", "submit", "--id", bid_id, *BIDDER_A)
    assert result.exit_code == 0, result.output
    assert "Status: SUBMITTED" in result.output


def test_bad_document_json(invoke, tender_id: str) -> None:
    result = invoke("bid", "draft", "--tender", tender_id, "--technical-docs", "[oops", *BIDDER_A)

    assert result.exit_code == 1
    assert "Invalid JSON" in result.output


def test_withdraw_then_redraft_is_refused(invoke, tender_id: str) -> None:
    bid_id = submit_bid(invoke, tender_id, BIDDER_A, "90000", 30, "a")

    result = invoke("bid", "withdraw", "--id", bid_id, "--reason", "Capacity", *BIDDER_A)
    assert result.exit_code == 0
    assert "Status: WITHDRAWN" in result.output

    result = invoke("bid", "draft", "--tender", tender_id, "--amount", "80000", *BIDDER_A)
    assert result.exit_code == 1
    assert "can no longer bid" in result.output


def test_delete_draft(invoke, tender_id: str) -> None:
    result = invoke("bid", "draft", "--tender", tender_id, *BIDDER_A)
    bid_id = extract_id(result.output, "Created bid draft")

    result = invoke("bid", "delete", "--id", bid_id, *BIDDER_A)
    assert result.exit_code == 0

    result = invoke("bid", "show", "--id", bid_id)
    assert result.exit_code == 1


def test_low_bid_shows_anomaly(invoke, tender_id: str) -> None:
    bid_id = submit_bid(invoke, tender_id, BIDDER_B, "65000", 10, "b")

    result = invoke("bid", "show", "--id", bid_id, "--json")

    data = json.loads(result.output)
    assert data["anomaly_score"] == 85
    assert data["status"] == "SUBMITTED"


# =============================================================================
# Award, Analysis & Sweep
# =============================================================================


def test_close_and_award(invoke, tender_id: str) -> None:
    bid_a = submit_bid(invoke, tender_id, BIDDER_A, "90000", 30, "a")
    bid_b = submit_bid(invoke, tender_id, BIDDER_B, "65000", 10, "b")

    assert invoke("tender", "close", "--id", tender_id, *BUYER).exit_code == 0
    result = invoke("tender", "award", "--id", tender_id, "--bid", bid_b, *BUYER)

    assert result.exit_code == 0, result.output
    assert f"Winning bid: {bid_b}" in result.output
    result = invoke("bid", "list", "--tender", tender_id)
    assert f"{bid_a}: alpha-works [REJECTED]" in result.output
    assert f"{bid_b}: beta-build [ACCEPTED]" in result.output

    result = invoke("tender", "award", "--id", tender_id, "--bid", bid_a, *BUYER)
    assert result.exit_code == 1


def test_analyze(invoke, tender_id: str) -> None:
    submit_bid(invoke, tender_id, BIDDER_A, "90000", 30, "a")
    submit_bid(invoke, tender_id, BIDDER_B, "65000", 10, "b")

    result = invoke("analyze", "--tender", tender_id, "--json", *BUYER)

    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["statistics"]["bids_count"] == 2
    assert report["ranking"][0]["bidder_company"] == "beta-build"
    assert report["recommendation"] == "Top recommendation is beta-build with weighted score 98.0."


def test_bidder_cannot_analyze(invoke, tender_id: str) -> None:
    result = invoke("analyze", "--tender", tender_id, *BIDDER_A)

    assert result.exit_code == 1


def test_sweep_once(invoke, tender_id: str) -> None:
    result = invoke("sweep")

    assert result.exit_code == 0
    assert "Sweep completed" in result.output
    assert "Expired tenders: 0" in result.output
