from __future__ import annotations

from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[2]
QUERIES_DIR = REPO_ROOT / "queries"
MIGRATIONS_DIR = REPO_ROOT / "migrations"

# The shipped migrations are PostgreSQL DDL; these carry the same shape in SQLite terms.
SQLITE_MIGRATIONS = {
    "20260102210424_users.sql": """
CREATE TABLE IF NOT EXISTS accounts(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password_plain TEXT NOT NULL,
    password_hashed TEXT NOT NULL,
    password_salted TEXT NOT NULL,
    password_peppered TEXT NOT NULL,
    password_salted_and_peppered TEXT NOT NULL
);
""",
    "20260106165000_passkey_users.sql": """
CREATE TABLE IF NOT EXISTS passkey_users(
    id TEXT PRIMARY KEY,
    mail TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL
);
""",
    "20260106165016_passkey_user_credentials.sql": """
CREATE TABLE IF NOT EXISTS passkey_user_credentials(
    credential_id BLOB PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES passkey_users(id),
    credential TEXT NOT NULL
);
""",
}


def write_migrations(directory: Path, files: dict[str, str]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, body in files.items():
        (directory / name).write_text(body, encoding="utf-8")
    return directory


def account_values(email: str = "ana@example.com", name: str = "Ana") -> dict[str, str]:
    return {
        "name": name,
        "email": email,
        "password_plain": "x",
        "password_hashed": "x",
        "password_salted": "x",
        "password_peppered": "x",
        "password_salted_and_peppered": "x",
    }
