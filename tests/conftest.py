# ena-coach-agent/tests/conftest.py
import sys
from pathlib import Path

# --- Part 1: Path Setup ---
# Must run before any application import so `services`, `agents`, ... resolve.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# --- Part 2: Environment Loading ---
from dotenv import load_dotenv
load_dotenv(REPO_ROOT / ".env.local")
load_dotenv(REPO_ROOT / ".env")


# --- Part 3: Application Imports ---
import pytest

from common.config_loader import Settings
from common.models import Contact
from services.ledger import Ledger
from services.messaging_service import OutboxGateway
from services.payment_service import SimulatedPaymentGateway
from tests._fakes import TEST_SECRET, ScriptedModel, make_route


# --- Part 4: Core Test Fixtures ---
@pytest.fixture
def routes():
    return [
        make_route(),
        make_route(id="R002", origin="Kisumu", destination="Nairobi", stops=("Kericho", "Nakuru", "Naivasha")),
        make_route(id="R003", origin="Nairobi", destination="Mombasa", stops=("Mtito Andei", "Voi"),
                   departure="09:00 PM", available=0),
    ]


@pytest.fixture
def contacts():
    return [
        Contact(phone_number="254711000001", name="Achieng", last_travel_date="2025-01-10", total_trips=4),
        Contact(phone_number="254711000002", name="Kamau", last_travel_date="2025-02-01", total_trips=1),
    ]


@pytest.fixture
def ledger(routes, contacts):
    return Ledger(routes=routes, contacts=contacts, ticket_secret=TEST_SECRET)


@pytest.fixture
def gateway():
    return SimulatedPaymentGateway()


@pytest.fixture
def outbox():
    return OutboxGateway()


@pytest.fixture
def model():
    return ScriptedModel()


@pytest.fixture
def settings():
    return Settings(ticket_secret=TEST_SECRET, max_tool_rounds=5, history_max_messages=40)


@pytest.fixture
def runtime(settings, model, gateway, outbox, routes, contacts):
    from agents.main import build_runtime
    return build_runtime(
        settings,
        model=model,
        payment_gateway=gateway,
        messaging_gateway=outbox,
        routes=routes,
        contacts=contacts,
    )


@pytest.fixture
def ctx(runtime):
    return runtime.context("254712345678", phone_number="254712345678", user_id="254712345678")
