from __future__ import annotations

from credstore.utils.sql import rewrite_positional, scan, split_statements


def test_split_statements_on_top_level_semicolons() -> None:
    sql = "CREATE TABLE a (id INT);\nCREATE TABLE b (id INT);\n"
    assert split_statements(sql) == ["CREATE TABLE a (id INT)", "CREATE TABLE b (id INT)"]


def test_split_statements_ignores_semicolons_in_literals_and_comments() -> None:
    sql = (
        "-- leading; comment\n"
        "INSERT INTO t VALUES ('a;b', \"odd;name\");\n"
        "/* block; comment */\n"
        "CREATE FUNCTION f() RETURNS int AS $body$ SELECT 1; $body$ LANGUAGE sql;"
    )
    statements = split_statements(sql)
    assert len(statements) == 2
    assert "'a;b'" in statements[0]
    assert statements[1].startswith("/* block; comment */")
    assert "$body$ SELECT 1; $body$" in statements[1]


def test_split_statements_drops_comment_only_tail() -> None:
    assert split_statements("SELECT 1;\n-- trailing note\n") == ["SELECT 1"]


def test_split_statements_without_trailing_semicolon() -> None:
    assert split_statements("SELECT 1") == ["SELECT 1"]


def test_scan_handles_doubled_quotes() -> None:
    segments = scan("SELECT 'it''s' FROM t")
    literals = [segment.text for segment in segments if segment.kind == "literal"]
    assert literals == ["'it''s'"]


def test_rewrite_positional_numbers_binds() -> None:
    sql, indices = rewrite_positional("SELECT * FROM accounts WHERE email = $1 AND id > $2")
    assert sql == "SELECT * FROM accounts WHERE email = :p1 AND id > :p2"
    assert indices == [1, 2]


def test_rewrite_positional_keeps_casts_apart_from_binds() -> None:
    sql, indices = rewrite_positional("SELECT $1::uuid")
    assert sql == "SELECT :p1 ::uuid"
    assert indices == [1]


def test_rewrite_positional_escapes_colons_outside_binds() -> None:
    sql, indices = rewrite_positional("SELECT '$1 at 10:30', arr[1:2] FROM t WHERE a = $1")
    assert "'$1 at 10\\:30'" in sql
    assert "arr[1\\:2]" in sql
    assert sql.endswith("a = :p1")
    assert indices == [1]


def test_rewrite_positional_reports_repeated_placeholder_once() -> None:
    _, indices = rewrite_positional("SELECT $1 WHERE $1 IS NOT NULL")
    assert indices == [1]
