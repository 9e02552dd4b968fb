from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from dealflow.domain.models import Contact, NewContact
from dealflow.domain.rules import Conflict, NotFound
from dealflow.domain.stages import DependentPolicy
from dealflow.domain.validation import require_valid, validate_contact
from dealflow.services.events import EventLogger, emit
from dealflow.services.utils import (
    blank_to_none,
    changed_fields,
    dependent_policy,
    update_fields,
    utc_now_iso,
)
from dealflow.store.sqlite import SqliteSession, SqliteStore

DUPLICATE_EMAIL = "A contact with this email already exists"


def list_contacts(store: SqliteStore) -> list[Contact]:
    rows = store.fetch_all("SELECT * FROM contacts ORDER BY created_at DESC, rowid DESC")
    return [Contact.from_row(row) for row in rows]


def get_contact(store: SqliteStore, contact_id: str) -> Contact:
    row = store.fetch_one("SELECT * FROM contacts WHERE contact_id = ?", (contact_id,))
    if row is None:
        raise NotFound("Contact not found")
    return Contact.from_row(row)


def add_contact(
    store: SqliteStore, payload: Mapping[str, Any], logger: EventLogger | None = None
) -> Contact:
    require_valid(validate_contact(payload))
    new = NewContact.from_payload(payload)

    now = utc_now_iso()
    contact_id = str(uuid4())
    with store.session() as session:
        if _email_taken(session, new.email):
            raise Conflict(DUPLICATE_EMAIL)
        session.execute(
            "INSERT INTO contacts (contact_id, name, email, phone, company, position, status, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                contact_id,
                new.name,
                new.email,
                new.phone,
                new.company,
                new.position,
                new.status,
                now,
                now,
            ),
        )
        row = session.fetch_one("SELECT * FROM contacts WHERE contact_id = ?", (contact_id,))

    emit(logger, "created", "contact", contact_id)
    return Contact.from_row(row)


def update_contact(
    store: SqliteStore,
    contact_id: str,
    changes: Mapping[str, Any],
    logger: EventLogger | None = None,
) -> Contact:
    require_valid(validate_contact(changes, partial=True))
    values = {field: blank_to_none(value) for field, value in changes.items()}

    with store.session() as session:
        before = session.fetch_one("SELECT * FROM contacts WHERE contact_id = ?", (contact_id,))
        if before is None:
            raise NotFound("Contact not found")
        if "email" in values and _email_taken(session, values["email"], exclude_id=contact_id):
            raise Conflict(DUPLICATE_EMAIL)
        changed = changed_fields(before, values)
        if values:
            update_fields(
                session,
                table="contacts",
                id_field="contact_id",
                record_id=contact_id,
                values=values,
                now=utc_now_iso(),
            )
        row = session.fetch_one("SELECT * FROM contacts WHERE contact_id = ?", (contact_id,))

    emit(logger, "updated", "contact", contact_id, changed)
    return Contact.from_row(row)


def delete_contact(
    store: SqliteStore,
    contact_id: str,
    on_dependents: DependentPolicy | str = DependentPolicy.RESTRICT,
    logger: EventLogger | None = None,
) -> None:
    """Delete a contact.

    Deals, tasks and activities may still point at the contact. ``RESTRICT``
    refuses the delete with :class:`Conflict` while any exist, ``DETACH``
    clears their ``contact_id`` and ``CASCADE`` deletes them (activities
    logged against the contact's deals included). All of it runs in one
    transaction.
    """
    policy = dependent_policy(on_dependents)
    with store.session() as session:
        if not session.exists("contacts", "contact_id", contact_id):
            raise NotFound("Contact not found")
        counts = _dependent_counts(session, contact_id)
        if any(counts.values()) and policy is DependentPolicy.RESTRICT:
            summary = ", ".join(f"{n} {table}" for table, n in counts.items() if n)
            raise Conflict(f"Contact still has dependents ({summary}); use detach or cascade")
        if policy is DependentPolicy.DETACH:
            for table in ("deals", "tasks", "activities"):
                session.execute(
                    f"UPDATE {table} SET contact_id = NULL, updated_at = ? WHERE contact_id = ?",
                    (utc_now_iso(), contact_id),
                )
        elif policy is DependentPolicy.CASCADE:
            session.execute(
                "DELETE FROM activities WHERE contact_id = ? "
                "OR deal_id IN (SELECT deal_id FROM deals WHERE contact_id = ?)",
                (contact_id, contact_id),
            )
            session.execute("DELETE FROM tasks WHERE contact_id = ?", (contact_id,))
            session.execute("DELETE FROM deals WHERE contact_id = ?", (contact_id,))
        session.execute("DELETE FROM contacts WHERE contact_id = ?", (contact_id,))

    emit(logger, "deleted", "contact", contact_id)


def _email_taken(session: SqliteSession, email: str, exclude_id: str | None = None) -> bool:
    if exclude_id is None:
        row = session.fetch_one("SELECT contact_id FROM contacts WHERE email = ?", (email,))
    else:
        row = session.fetch_one(
            "SELECT contact_id FROM contacts WHERE email = ? AND contact_id != ?",
            (email, exclude_id),
        )
    return row is not None


def _dependent_counts(session: SqliteSession, contact_id: str) -> dict[str, int]:
    return {
        table: session.count(table, "contact_id = ?", (contact_id,))
        for table in ("deals", "tasks", "activities")
    }
