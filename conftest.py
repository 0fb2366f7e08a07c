import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from mesclasses.context import AppContext
from mesclasses.server import app
from mesclasses.store import EntityStore


@pytest.fixture
def store():
    client = AsyncMongoMockClient()
    return EntityStore.from_database(client["mesclasses_test"])


@pytest.fixture
def api(store):
    app.state.store = store
    app.state.context = AppContext()
    return TestClient(app)


def massar_sheet(students):
    """Rows shaped like an official Massar export: 15 header rows, then one row per student."""
    rows = [[None] * 7 for _ in range(15)]
    rows[0][0] = "Royaume du Maroc"
    rows[10][2] = "Classe :"
    rows[10][3] = "1APIC-1"
    for massar_id, full_name, birth_date in students:
        rows.append([None, None, massar_id, full_name, "M", birth_date, None])
    return rows


@pytest.fixture
def massar_rows():
    return massar_sheet([
        ("J130045678", "EL AMRANI Youssef", "15/03/2010"),
        ("J130045679", "BENNANI Sara", 40210),
        ("J130045680", "Nom et Prénom", None),
        ("J130045681", "", "01/01/2010"),
        ("J130045682", "ALAOUI", "2010-07-04"),
    ])
