"""SQLite storage for flows and their field-rename audit."""

import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from flowgraph.models.flow_definition import FlowDefinition, FlowRecord

DEFAULT_DB_PATH = Path(__file__).parent / "data" / "flows.db"
FLOW_DB_PATH = Path(os.getenv("FLOW_DB_PATH", str(DEFAULT_DB_PATH)))


@dataclass
class FlowRow:
    id: str
    name: str
    slug: str
    description: str
    version: int
    created_at: str
    updated_at: str


def _connect() -> sqlite3.Connection:
    FLOW_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(FLOW_DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def _row_to_flow_row(row: sqlite3.Row) -> FlowRow:
    return FlowRow(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def init_db() -> None:
    with _connect() as conn:
        conn.execute(
            """
            create table if not exists flows (
                id text primary key,
                slug text not null unique,
                name text not null,
                description text not null default '',
                version integer not null,
                definition_json text not null,
                created_at text not null,
                updated_at text not null
            )
            """
        )
        conn.execute(
            """
            create table if not exists flow_field_renames (
                id integer primary key autoincrement,
                flow_id text not null,
                version integer not null,
                old_slug text not null,
                new_slug text not null,
                created_at text not null
            )
            """
        )
        conn.execute(
            """
            create index if not exists idx_flow_field_renames_flow_id
            on flow_field_renames(flow_id)
            """
        )
        conn.commit()


def insert_flow(flow: FlowRecord, now: str) -> None:
    with _connect() as conn:
        conn.execute(
            """
            insert into flows (
                id, slug, name, description, version,
                definition_json, created_at, updated_at
            )
            values (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                flow.id,
                flow.slug,
                flow.name,
                flow.description,
                flow.version,
                flow.definition.model_dump_json(by_alias=True, exclude_none=True),
                now,
                now,
            ),
        )
        conn.commit()


def update_flow(flow: FlowRecord, expected_version: int, now: str) -> bool:
    """Write a new version of a flow if the stored version still matches.

    The version check and the write happen in one statement, so two writers
    holding the same version cannot both succeed. Returns False on a stale
    version or an unknown id.
    """
    with _connect() as conn:
        cursor = conn.execute(
            """
            update flows
            set slug = ?,
                name = ?,
                description = ?,
                version = ?,
                definition_json = ?,
                updated_at = ?
            where id = ? and version = ?
            """,
            (
                flow.slug,
                flow.name,
                flow.description,
                flow.version,
                flow.definition.model_dump_json(by_alias=True, exclude_none=True),
                now,
                flow.id,
                expected_version,
            ),
        )
        conn.commit()
    return cursor.rowcount == 1


def get_flow(flow_id: str) -> FlowRecord | None:
    with _connect() as conn:
        row = conn.execute(
            """
            select id, slug, name, description, version, definition_json
            from flows
            where id = ?
            """,
            (flow_id,),
        ).fetchone()
    if not row:
        return None
    return FlowRecord.model_validate({
        "id": row["id"],
        "slug": row["slug"],
        "name": row["name"],
        "description": row["description"],
        "version": row["version"],
        "definition": FlowDefinition.model_validate_json(row["definition_json"]),
    })


def get_flow_row(flow_id: str) -> FlowRow | None:
    with _connect() as conn:
        row = conn.execute(
            """
            select id, slug, name, description, version, created_at, updated_at
            from flows
            where id = ?
            """,
            (flow_id,),
        ).fetchone()
    if not row:
        return None
    return _row_to_flow_row(row)


def find_flow_id_by_slug(slug: str) -> str | None:
    with _connect() as conn:
        row = conn.execute("select id from flows where slug = ?", (slug,)).fetchone()
    return row["id"] if row else None


def list_flows() -> list[FlowRow]:
    with _connect() as conn:
        rows = conn.execute(
            """
            select id, slug, name, description, version, created_at, updated_at
            from flows
            order by updated_at desc
            """
        ).fetchall()
    return [_row_to_flow_row(row) for row in rows]


def delete_flow(flow_id: str) -> None:
    with _connect() as conn:
        conn.execute("delete from flow_field_renames where flow_id = ?", (flow_id,))
        conn.execute("delete from flows where id = ?", (flow_id,))
        conn.commit()


def insert_field_renames(flow_id: str, version: int, renames: dict[str, str], now: str) -> None:
    with _connect() as conn:
        conn.executemany(
            """
            insert into flow_field_renames (flow_id, version, old_slug, new_slug, created_at)
            values (?, ?, ?, ?, ?)
            """,
            [(flow_id, version, old, new, now) for old, new in renames.items()],
        )
        conn.commit()


def list_field_renames(flow_id: str) -> list[dict]:
    with _connect() as conn:
        rows = conn.execute(
            """
            select version, old_slug, new_slug, created_at
            from flow_field_renames
            where flow_id = ?
            order by id asc
            """,
            (flow_id,),
        ).fetchall()
    return [
        {
            "version": row["version"],
            "oldSlug": row["old_slug"],
            "newSlug": row["new_slug"],
            "createdAt": row["created_at"],
        }
        for row in rows
    ]
