"""
Pytest fixtures for the tour sales backend tests.

Provides an app on in-memory SQLite, a test client, basic-auth headers, and a
scripted fake tour provider (httpx.MockTransport) that records every call.
"""

import base64
import json
import uuid
from decimal import Decimal

import httpx
import pytest

from toursales import create_app
from toursales.extensions import db
from toursales.services import sale_repository


TOUR_CODE = "3f1c2b9a-5d4e-4f6a-9b8c-7d6e5f4a3b2c"
SECOND_ITEM = "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"

TEST_CONFIG = {
    "TESTING": True,
    "APP_ENV": "test",
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "SQLALCHEMY_TRACK_MODIFICATIONS": False,
    "BASIC_AUTH_USERNAME": "sales-api",
    "BASIC_AUTH_PASSWORD": "s3cret",
    "PROVIDER_TOKEN_URL": "https://identity.provider.test/connect/token",
    "PROVIDER_API_URL": "https://api.provider.test",
    "PROVIDER_CLIENT_ID": "ecommerce-client",
    "PROVIDER_CLIENT_SECRET": "client-secret",
    "IDENTITY_BASE_URL": "https://users.identity.test",
    "IDENTITY_SYSTEM_USERNAME": "system",
    "IDENTITY_SYSTEM_PASSWORD": "system-pass",
    "LOGIN_MAX_FAILED_ATTEMPTS": 3,
    "LOGIN_LOCKOUT_MINUTES": 15,
}


def make_tour_info(
    date="2025-05-15",
    start_time="14:00:00",
    available_quota=2,
    encounter_type="NONE",
    with_prices=True,
):
    info = {
        "tourCode": TOUR_CODE,
        "tourName": "Valle Nevado Full Day",
        "startTime": start_time,
        "encounterType": encounter_type,
        "meetingPoints": [{"id": 41, "name": "Plaza de Armas"}],
        "pickupLocations": [{"id": "PK-7", "name": "Hotel Lobby"}],
        "priceHeaders": [],
        "dates": [],
    }
    if with_prices:
        info["priceHeaders"] = [{
            "initDate": "2025-01-01",
            "endDate": "2025-12-31",
            "prices": [
                {"ageGroup": "Adult", "ageGroupCode": "ADT", "unitPrice": 45000},
                {"ageGroup": "Child", "ageGroupCode": "CHD", "unitPrice": 30000},
            ],
        }]
    if date is not None:
        info["dates"] = [{
            "date": date,
            "quotas": [{
                "startTime": start_time,
                "endTime": "18:00:00",
                "availableQuota": available_quota,
                "isAvailable": True,
            }],
        }]
    return info


class FakeProvider:
    """
    Scripted stand-in for the tour provider and the identity service.

    Every request is recorded in ``calls`` as (operation, method, path, body).
    ``script(operation, ...)`` overrides one operation with a status/body or
    makes it raise a connection error.
    """

    def __init__(self):
        self.calls = []
        self.tour_info = make_tour_info()
        self.token_payload = {"access_token": "provider-token-1", "expires_in": 3600, "token_type": "Bearer"}
        self.overrides = {}

    # -- scripting -------------------------------------------------------

    def script(self, operation, status=200, json_body=None, content=None, unreachable=False):
        self.overrides[operation] = {
            "status": status,
            "json": json_body,
            "content": content,
            "unreachable": unreachable,
        }

    def operations(self):
        return [call[0] for call in self.calls]

    def bodies(self, operation):
        return [call[3] for call in self.calls if call[0] == operation]

    def headers(self, operation):
        return [call[4] for call in self.calls if call[0] == operation]

    # -- transport -------------------------------------------------------

    @staticmethod
    def _operation(request):
        path = request.url.path
        if request.url.host == "users.identity.test":
            return "identity_token" if path.endswith("/auth/token") else "identity_login"
        if path.endswith("/connect/token"):
            return "token"
        if "/tourInformation/" in path:
            return "tour"
        if path.endswith("/addToCart"):
            return "cart"
        if path.endswith("/addPassengers"):
            return "passengers"
        if "/rater/" in path:
            return "rater"
        if path.endswith("/pay"):
            return "pay"
        return "unknown"

    def _default(self, operation, body):
        if operation == "token":
            return httpx.Response(200, json=self.token_payload)
        if operation == "tour":
            return httpx.Response(200, json=self.tour_info)
        if operation == "cart":
            return httpx.Response(200, json={
                "idBooking": "BK-1001",
                "bookingExpirationDate": "2025-05-10T12:00:00",
                "waitTime": 900,
            })
        if operation == "passengers":
            return httpx.Response(200, json={"idBooking": body["idBooking"], "status": "OK"})
        if operation == "rater":
            return httpx.Response(200, json={"idBooking": "BK-1001", "totalAmount": 90000})
        if operation == "pay":
            return httpx.Response(200, json={
                "idBooking": body["idBooking"],
                "salesCode": "SC-555",
                "balance": 0,
                "hasAdvancePayment": False,
            })
        if operation == "identity_token":
            return httpx.Response(200, json={"token": "system-token"})
        if operation == "identity_login":
            if body.get("password") == "correct-horse":
                return httpx.Response(200, json={"user": {"email": body["email"]}, "token": "user-jwt"})
            return httpx.Response(401, json={"message": "Invalid credentials"})
        return httpx.Response(404, json={"message": "Unknown route"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        operation = self._operation(request)
        body = None
        if request.content:
            try:
                body = json.loads(request.content)
            except ValueError:
                body = request.content.decode()
        self.calls.append((operation, request.method, request.url.path, body, dict(request.headers)))

        override = self.overrides.get(operation)
        if override is None:
            return self._default(operation, body)
        if override["unreachable"]:
            raise httpx.ConnectError("connection refused", request=request)
        if override["content"] is not None:
            return httpx.Response(override["status"], content=override["content"])
        if override["json"] is None:
            return httpx.Response(override["status"])
        return httpx.Response(override["status"], json=override["json"])


@pytest.fixture(scope='function')
def fake_provider():
    return FakeProvider()


@pytest.fixture(scope='function')
def app(fake_provider):
    """Create application for testing (fresh in-memory database per test)."""
    transport = httpx.MockTransport(fake_provider.handler)
    app = create_app(TEST_CONFIG, provider_transport=transport, identity_transport=transport)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def auth_headers():
    raw = f"{TEST_CONFIG['BASIC_AUTH_USERNAME']}:{TEST_CONFIG['BASIC_AUTH_PASSWORD']}".encode()
    return {"Authorization": "Basic " + base64.b64encode(raw).decode()}


@pytest.fixture(scope='function')
def sale_payload():
    """Factory for a valid POST /sales body; keyword arguments patch custommer."""
    def _build(**customer_overrides):
        customer = {
            "idSaleProvider": "PROV-" + uuid.uuid4().hex[:10],
            "name": "Ana",
            "lastName": "Rojas",
            "email": "ana.rojas@example.com",
            "phoneNumber": "+56911112222",
            "country": "CL",
            "city": "Santiago",
            "idioma": "es",
            "date": "2025-05-15",
            "time": "14:00:00",
            "qtypax": 2,
            "opt": "Full day",
            "total": 90000,
            "itemsCart": [{"idItemEcommerce": TOUR_CODE}, {"idItemEcommerce": SECOND_ITEM}],
        }
        customer.update(customer_overrides)
        return {"provider": {"name": "Turistik Web"}, "custommer": customer}
    return _build


@pytest.fixture(scope='function')
def make_sale(db_session):
    """Insert a sale directly through the repository."""
    counter = {"n": 0}

    def _make(status="CONFIRMED", qty_pax=3, item_count=None, **overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "provider_name": "Turistik Web",
            "id_sale_provider": f"PROV-{n:04d}",
            "secure_id": f"TUR-20250101-{n:04d}",
            "name": "Ana",
            "last_name": "Rojas",
            "email": "ana.rojas@example.com",
            "phone_number": "+56911112222",
            "country": "CL",
            "city": "Santiago",
            "language": "es",
            "service_date": "2025-05-15",
            "service_time": "14:00:00",
            "qty_pax": qty_pax,
            "opt": "Full day",
            "total": Decimal("90000.00"),
            "status": status,
        }
        fields.update(overrides)
        count = qty_pax if item_count is None else item_count
        item_ids = [str(uuid.uuid4()) for _ in range(count)]
        return sale_repository.create_with_items(fields, item_ids)

    return _make


@pytest.fixture(scope='function')
def tour_info_factory():
    return make_tour_info
