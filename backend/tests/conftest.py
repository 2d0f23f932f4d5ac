import random

import httpx
import pytest

from fakes import FakeBackend, make_card
from flashdeck import app
from flashdeck.db import init_all_databases
from flashdeck.db.sqlite import connect
from flashdeck.services import session_store, task_registry


@pytest.fixture
async def data_dir(tmp_path):
    await init_all_databases(tmp_path)
    yield tmp_path
    session_store.close_all()
    await task_registry.drain()


@pytest.fixture
async def db(data_dir):
    async with connect() as conn:
        yield conn


@pytest.fixture
async def client(data_dir):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def backend():
    return FakeBackend([make_card("c1"), make_card("c2"), make_card("c3")])
