import csv
from pathlib import Path
from time import sleep

from statebook import config
from statebook.dispatcher import available_operations
from statebook.store import MemoryStateStore, available_backends
from statebook.utils import profiler
from scripts import seed_records

SEED_ROWS = 5


def test_get_settings_defaults(monkeypatch):
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    monkeypatch.delenv("DB_NAME", raising=False)
    settings = config.get_settings()
    assert settings.store_backend == "memory"
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_name == "statebook"
    assert settings.default_page_size > 0
    assert settings.scan_batch_size > 0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "postgres")
    monkeypatch.setenv("SCAN_BATCH_SIZE", "25")
    settings = config.get_settings()
    assert settings.store_backend == "postgres"
    assert settings.scan_batch_size == 25


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    assert stats.rss_bytes is not None and stats.rss_bytes > 0
    fields = stats.as_log_fields()
    assert fields["duration_ms"] >= 50


def test_available_operations_contains_known_entries():
    names = available_operations()
    assert "initPicture" in names
    assert "getHistoryForPicture" in names
    assert len(names) == len(set(names))


def test_available_backends():
    assert available_backends() == ["memory", "postgres"]


def test_seed_script_writes_csv(tmp_path: Path):
    csv_path = tmp_path / "records.csv"
    seed_records._generate_rows_csv(csv_path, rows=SEED_ROWS, seed=123)
    assert csv_path.exists()
    with csv_path.open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    # header + 5 rows
    assert len(rows) == SEED_ROWS + 1
    assert rows[0] == ["id", "category", "quantity", "owner"]
    assert rows[1][0] == "picture0"
    assert int(rows[1][2]) > 0


def test_seed_script_loads_through_dispatcher(tmp_path: Path):
    csv_path = tmp_path / "records.csv"
    seed_records._generate_rows_csv(csv_path, rows=SEED_ROWS, seed=7)
    store = MemoryStateStore()

    created, failed = seed_records._load_csv(store, csv_path)
    assert (created, failed) == (SEED_ROWS, 0)

    # Reloading hits the existing ids.
    created, failed = seed_records._load_csv(store, csv_path)
    assert (created, failed) == (0, SEED_ROWS)
