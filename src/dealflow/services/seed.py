from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from dealflow.services import activities, contacts, pipeline, tasks
from dealflow.services.events import EventLogger, emit
from dealflow.store.sqlite import SqliteStore

SAMPLE_CONTACTS = [
    {
        "name": "John Doe",
        "email": "john@techcorp.com",
        "phone": "123-456-7890",
        "company": "Tech Corp",
        "position": "CEO",
        "status": "active",
    },
    {
        "name": "Jane Smith",
        "email": "jane@designco.com",
        "phone": "098-765-4321",
        "company": "Design Co",
        "position": "Designer",
        "status": "active",
    },
    {
        "name": "Mike Johnson",
        "email": "mike@innovate.com",
        "phone": "555-123-4567",
        "company": "Innovate Inc",
        "position": "CTO",
        "status": "active",
    },
]

# One deal per sample contact, same order.
SAMPLE_DEALS = [
    {
        "title": "Enterprise Software License",
        "value": 50000,
        "stage": "proposal",
        "description": "Annual enterprise license renewal",
    },
    {
        "title": "Website Redesign Project",
        "value": 25000,
        "stage": "negotiation",
        "description": "Complete website overhaul",
    },
    {
        "title": "Cloud Migration Service",
        "value": 75000,
        "stage": "lead",
        "description": "AWS cloud migration project",
    },
]

# (contact index, days from now, payload)
SAMPLE_TASKS = [
    (0, 2, {"title": "Follow up on proposal", "description": "Send detailed pricing breakdown",
            "status": "TODO", "priority": "MEDIUM"}),
    (1, 5, {"title": "Schedule design review", "description": "Review website mockups with client",
            "status": "IN_PROGRESS", "priority": "MEDIUM"}),
    (2, 3, {"title": "Prepare migration plan",
            "description": "Document current infrastructure and plan migration steps",
            "status": "DONE", "priority": "HIGH"}),
]

# (contact/deal index, days ago, payload)
SAMPLE_ACTIVITIES = [
    (0, 5, {"type": "call", "description": "Initial discovery call"}),
    (0, 2, {"type": "email", "description": "Sent proposal draft"}),
    (1, 3, {"type": "meeting", "description": "Design requirements gathering"}),
    (2, 1, {"type": "call", "description": "Technical discussion"}),
]


@dataclass(frozen=True)
class SeedResult:
    contacts: int
    deals: int
    tasks: int
    activities: int


def clear_all(store: SqliteStore) -> None:
    with store.session() as session:
        for table in ("activities", "tasks", "deals", "contacts"):
            session.execute(f"DELETE FROM {table}")


def seed_sample_data(
    store: SqliteStore, now: datetime | None = None, logger: EventLogger | None = None
) -> SeedResult:
    """Replace every record with the sample data set."""
    now = now or datetime.now(UTC)
    clear_all(store)

    created_contacts = [contacts.add_contact(store, payload) for payload in SAMPLE_CONTACTS]
    created_deals = [
        pipeline.add_deal(store, {**payload, "contact_id": contact.contact_id})
        for payload, contact in zip(SAMPLE_DEALS, created_contacts)
    ]
    for index, days, payload in SAMPLE_TASKS:
        tasks.add_task(
            store,
            {
                **payload,
                "due_date": (now + timedelta(days=days)).date(),
                "contact_id": created_contacts[index].contact_id,
            },
        )
    for index, days, payload in SAMPLE_ACTIVITIES:
        activities.add_activity(
            store,
            {
                **payload,
                "date": now - timedelta(days=days),
                "contact_id": created_contacts[index].contact_id,
                "deal_id": created_deals[index].deal_id,
            },
        )

    result = SeedResult(
        contacts=len(SAMPLE_CONTACTS),
        deals=len(SAMPLE_DEALS),
        tasks=len(SAMPLE_TASKS),
        activities=len(SAMPLE_ACTIVITIES),
    )
    emit(logger, "seeded", "workspace", "*", ["contacts", "deals", "tasks", "activities"])
    return result
