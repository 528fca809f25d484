from dataclasses import dataclass
from datetime import datetime


@dataclass
class JobRecord:
    job_id: str
    created_at: datetime


SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    job_id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS snapshots (
    job_id TEXT PRIMARY KEY,
    items TEXT NOT NULL DEFAULT '{}',
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS chat_config (
    requester TEXT PRIMARY KEY,
    chat TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""
