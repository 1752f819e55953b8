import sqlite3
from types import SimpleNamespace

import pytest

from database.DatabaseProvider import DatabaseProvider
from database.schema import SCHEMA_SQL


class FakeExecutor:
    """Execution capability double that records every query it receives."""

    def __init__(self, rows=None, error: BaseException | None = None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.queries: list[str] = []

    def execute_query(self, query: str):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.rows


class DriverError(Exception):
    """Stand-in for a raw DB-API exception exposing structured attributes."""

    def __init__(self, message, **fields):
        super().__init__(message)
        for name, value in fields.items():
            setattr(self, name, value)


@pytest.fixture()
def sample_db_path(tmp_path):
    db_path = tmp_path / "movies.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.executemany(
            "INSERT INTO directors (id, name, country) VALUES (?, ?, ?)",
            [(1, "Greta Gerwig", "United States"), (2, "Jordan Peele", "United States")],
        )
        conn.executemany(
            "INSERT INTO movies (id, title, genre, release_year, director_id, runtime_minutes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                (1, "Lady Bird", "comedy", 2017, 1, 94),
                (2, "Frances Ha", "comedy", 2012, 1, 86),
                (3, "Get Out", "horror", 2017, 2, 104),
            ],
        )
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture()
def sqlite_provider(sample_db_path):
    provider = DatabaseProvider(db_path=str(sample_db_path))
    yield provider
    provider.close()


@pytest.fixture()
def sqlite_executor(sqlite_provider):
    return sqlite_provider.create_executor()


# ---------------------------------------------------------------------------
# OpenAI doubles
# ---------------------------------------------------------------------------


class FakeEncoding:
    """Counts one token per whitespace-separated word."""

    def encode(self, text):
        return text.split()


def content_chunks(text):
    """Streamed chunks for a plain assistant answer, five characters at a time."""
    return [
        SimpleNamespace(
            choices=[
                SimpleNamespace(delta=SimpleNamespace(content=text[i : i + 5], tool_calls=None))
            ]
        )
        for i in range(0, len(text), 5)
    ]


def tool_call_chunks(arguments, call_id="call_1", name="read_data"):
    """Streamed chunks for a single tool call whose arguments arrive in two parts."""
    middle = len(arguments) // 2
    parts = [arguments[:middle], arguments[middle:]]
    chunks = []
    for i, part in enumerate(parts):
        tool_call = SimpleNamespace(
            index=0,
            id=call_id if i == 0 else None,
            function=SimpleNamespace(name=name if i == 0 else None, arguments=part),
        )
        chunks.append(
            SimpleNamespace(
                choices=[SimpleNamespace(delta=SimpleNamespace(content=None, tool_calls=[tool_call]))]
            )
        )
    # Trailing usage chunk without choices
    chunks.append(SimpleNamespace(choices=[]))
    return chunks


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


class FakeOpenAI:
    """Async client double replaying one scripted stream per completion call."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        return _FakeStream(self._responses.pop(0))
