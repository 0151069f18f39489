import sys
import logging
import pytest
from pathlib import Path
from typing import Generator, List
from datetime import datetime, timezone

from flashdeck.clock import FixedClock
from flashdeck.db import FlashdeckDatabase
from flashdeck.models import CardContent


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Run each test with the working directory set to its tmpdir, so a stray
    .env file or relative ./decks directory never leaks into a test.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_flashdeck.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[FlashdeckDatabase, None, None]:
    """
    Provide a FlashdeckDatabase, either in-memory or file-backed, and close it
    (deleting the file) on teardown. The schema is NOT initialized.
    """
    if request.param == "memory":
        db_man = FlashdeckDatabase(db_path_memory)
    else:
        db_man = FlashdeckDatabase(db_path_file)
    try:
        yield db_man
    finally:
        db_man.close_connection()
        if request.param == "file" and db_path_file.exists():
            try:
                db_path_file.unlink()
            except OSError as e:
                logging.warning(
                    f"Error removing temporary DB file in test fixture teardown: {e}"
                )


@pytest.fixture
def initialized_db_manager(db_manager: FlashdeckDatabase) -> FlashdeckDatabase:
    db_manager.initialize_schema()
    return db_manager


# --- Clock & Card Fixtures ---
@pytest.fixture
def start_time() -> datetime:
    return datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time: datetime) -> FixedClock:
    return FixedClock(start_time)


@pytest.fixture
def sample_contents() -> List[CardContent]:
    """
    Four cards from a general-knowledge deck. Card 2 is authored as a
    favorite; ids 1..4 follow this order.
    """
    return [
        CardContent(front="What is the capital of France?", back="Paris"),
        CardContent(
            front="What is the largest planet?", back="Jupiter", favorite=True
        ),
        CardContent(front="Who painted the Mona Lisa?", back="Leonardo da Vinci"),
        CardContent(front="What is 6 times 7?", back="42"),
    ]


@pytest.fixture
def deck_yaml_dir(tmp_path: Path) -> Path:
    """A decks directory holding one valid 'general' deck file."""
    decks_dir = tmp_path / "decks"
    decks_dir.mkdir()
    (decks_dir / "general.yaml").write_text(
        "id: general\n"
        "name: General Knowledge\n"
        "cards:\n"
        "  - q: What is the capital of France?\n"
        "    a: Paris\n"
        "  - q: What is the largest planet?\n"
        "    a: Jupiter\n"
        "    favorite: true\n"
        "  - q: How many legs does a spider have?\n"
        "    a: 8\n",
        encoding="utf-8",
    )
    return decks_dir
