import os
import pytest


@pytest.fixture(scope="session", autouse=True)
def set_test_env(tmp_path_factory):
    db_file = tmp_path_factory.mktemp("data") / "test.db"
    demo_file = tmp_path_factory.mktemp("demo") / "demo.db"
    os.environ["DB_PATH"] = str(db_file)
    os.environ["APP_PASSWORD"] = "testpass"
    os.environ["SECRET_KEY"] = "test-secret-key-for-testing"
    os.environ["DEMO_DB_URL"] = str(demo_file)
    os.environ.pop("ANTHROPIC_API_KEY", None)


@pytest.fixture(scope="session")
def client(set_test_env):
    from fastapi.testclient import TestClient
    from app.main import app
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture(scope="session")
def authed_client(client):
    client.post("/login", data={"password": "testpass", "user": "chef"})
    return client


@pytest.fixture
def db(tmp_path):
    """An empty, initialized database used by every core call inside the test."""
    from kitchen_rotation.core import locations
    from kitchen_rotation.db.database import init_db, override_db_path
    path = tmp_path / "rotation.db"
    with override_db_path(path):
        init_db()
        locations.ensure_defaults()
        yield path


@pytest.fixture
def add_recipe():
    from kitchen_rotation.core import recipes as recipes_core
    from kitchen_rotation.db.models import Recipe

    def _add(name: str, category: str, tags: str = None) -> int:
        return recipes_core.add(Recipe(id=None, name=name, category=category, tags=tags))
    return _add


@pytest.fixture
def full_catalog(add_recipe):
    """Enough recipes per category that no course has to repeat within a day."""
    ids = {}
    for category, n in [
        ("ClearSoups", 3), ("CreamSoups", 3), ("MainMeat", 3), ("MainFish", 3),
        ("MainVegan", 5), ("Sides", 20), ("Salads", 4),
        ("HotDesserts", 3), ("ColdDesserts", 3),
    ]:
        ids[category] = [add_recipe(f"{category} {i}", category) for i in range(n)]
    return ids
