"""Venue entry burst: many members scanning the same event QR at once.

Seeds an event directly through the ORM (events and memberships belong to the
platform, not to this service), then each simulated member scans the event
QR code, checks their state and occasionally unchecks.

Usage:
    DATABASE_URL=postgresql://... SECRET_KEY=... locust -H http://localhost:8000
"""
import itertools
import os

from locust import HttpUser, task, between, events

from rollcall.core.enums import CheckinMethod, Role
from rollcall.core.security import create_actor_token, generate_checkin_token
from rollcall.db import get_db_context
from rollcall.db.models import Event, EventMember

MEMBER_COUNT = int(os.getenv("LOCUST_MEMBERS", "500"))
FIRST_USER_ID = 10_000
OWNER_ID = 1

seeded = {}
_user_ids = itertools.count(FIRST_USER_ID)


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    from dotenv import load_dotenv
    load_dotenv()

    print(f"Seeding event with {MEMBER_COUNT} members...")
    with get_db_context() as db:
        event = Event(
            owner_id=OWNER_ID,
            checkin_enabled=True,
            enabled_methods=[CheckinMethod.EVENT_QR.value, CheckinMethod.SELF_MANUAL.value],
            event_token=generate_checkin_token(),
        )
        db.add(event)
        db.flush()
        db.add_all(
            EventMember(event_id=event.id, user_id=user_id, role=Role.PARTICIPANT.name)
            for user_id in range(FIRST_USER_ID, FIRST_USER_ID + MEMBER_COUNT)
        )
        db.commit()
        seeded["event_id"] = event.id
        seeded["event_token"] = event.event_token


class ArrivingMember(HttpUser):
    wait_time = between(1, 2)

    def on_start(self):
        self.user_id = next(_user_ids)
        if self.user_id >= FIRST_USER_ID + MEMBER_COUNT:
            raise RuntimeError("More simulated users than seeded members; raise LOCUST_MEMBERS")
        self.headers = {"Authorization": f"Bearer {create_actor_token(self.user_id)}"}
        self.event_id = seeded["event_id"]

    @task(5)
    def scan_event_qr(self):
        with self.client.post(
            f"/api/v1/events/{self.event_id}/checkins",
            json={"method": CheckinMethod.EVENT_QR.value, "token": seeded["event_token"]},
            headers=self.headers,
            name="POST /checkins (EVENT_QR)",
            catch_response=True,
        ) as response:
            if response.status_code != 200:
                response.failure(f"Check-in failed: {response.status_code} {response.text}")

    @task(2)
    def view_state(self):
        self.client.get(
            f"/api/v1/events/{self.event_id}/checkins/{self.user_id}",
            headers=self.headers,
            name="GET /checkins/{user_id}",
        )

    @task(1)
    def uncheck(self):
        self.client.delete(
            f"/api/v1/events/{self.event_id}/checkins/{self.user_id}",
            headers=self.headers,
            name="DELETE /checkins/{user_id}",
        )
