from __future__ import annotations

from otcauth.database import _engine_options


def test_sqlite_uses_busy_timeout(tmp_path):
    options = _engine_options(f"sqlite:///{tmp_path / 'nested' / 'otc.db'}", 5)

    assert options == {"connect_args": {"timeout": 5, "check_same_thread": False}}
    assert (tmp_path / "nested").is_dir()


def test_postgres_bounds_connect_and_statement_time():
    options = _engine_options("postgresql://otc@db.internal/otcauth", 2.5)

    assert options["pool_timeout"] == 2.5
    assert options["connect_args"] == {
        "connect_timeout": 2,
        "options": "-c statement_timeout=2500",
    }


def test_mysql_bounds_connect_read_and_write():
    options = _engine_options("mysql+pymysql://otc@db.internal/otcauth", 5)

    assert options["connect_args"] == {"connect_timeout": 5, "read_timeout": 5, "write_timeout": 5}


def test_sub_second_timeout_still_sets_connect_timeout():
    options = _engine_options("postgresql+psycopg2://otc@db.internal/otcauth", 0.2)

    assert options["connect_args"]["connect_timeout"] == 1
    assert options["connect_args"]["options"] == "-c statement_timeout=200"
