# coding: utf-8

import json
from typing import Any, Dict, Tuple

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from space_together import create_app
from space_together.core.config import Settings
from space_together.core.database import MongoManager
from space_together.core.security import TokenCodec
from space_together.schemas import SchoolClaims, UserClaims
from space_together.services.event_bus import EventBus


FIXED_NOW = 1_700_000_000
USER_SECRET = "user-secret-for-tests"
SCHOOL_SECRET = "school-secret-for-tests"


class FakeClock:
    """Settable epoch clock for the token codec."""

    def __init__(self, now: float = FIXED_NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def parse_frame(frame: str) -> Tuple[str, Dict[str, Any]]:
    """Split an SSE frame into its event kind and decoded JSON data."""
    assert frame.endswith("\n\n")
    lines = frame.rstrip("\n").split("\n")
    assert lines[0].startswith("event: ")
    assert lines[1].startswith("data: ")
    return lines[0][len("event: "):], json.loads(lines[1][len("data: "):])


def school_claims(school_id: str = "s1") -> SchoolClaims:
    return SchoolClaims(
        id=school_id,
        name=f"School {school_id}",
        username=school_id,
        database_name=f"school_{school_id}",
    )


def user_claims(user_id: str = "650000000000000000000001") -> UserClaims:
    return UserClaims(
        id=user_id,
        name="Ada Lovelace",
        email="ada@example.org",
        username="ada_lovelace_7",
        role="STUDENT",
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        MONGO_URI="mongodb://localhost:27017",
        MAIN_DB_NAME="space_together_test",
        USER_SECRET=USER_SECRET,
        SCHOOL_SECRET=SCHOOL_SECRET,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(settings: Settings, clock: FakeClock) -> TokenCodec:
    return TokenCodec.from_settings(settings, clock=clock)


@pytest.fixture
def mongo(settings: Settings) -> MongoManager:
    return MongoManager(AsyncMongoMockClient(), settings.MAIN_DB_NAME)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(queue_size=64, heartbeat_interval=None)


@pytest.fixture
def app(settings: Settings, mongo: MongoManager, event_bus: EventBus, codec: TokenCodec) -> FastAPI:
    return create_app(settings=settings, mongo=mongo, event_bus=event_bus, codec=codec)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    # localhost never resolves to a school subdomain
    return TestClient(app, base_url="http://localhost")


@pytest.fixture
def user_token(codec: TokenCodec) -> str:
    return codec.issue_user(user_claims())


@pytest.fixture
def school_token(codec: TokenCodec) -> str:
    return codec.issue_school(school_claims("s1"))
