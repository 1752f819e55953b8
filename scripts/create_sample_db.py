"""
Read Gate - sample database generation.

Builds a small SQLite movie database (directors, movies, ratings) to point
the gate at while trying queries from the CLI or the API.

Usage:
    python scripts/create_sample_db.py [--output PATH] [--seed N] [--ratings N]
"""

import argparse
import random
import sqlite3
import sys
from pathlib import Path

# The schema module lives under packages/core/src; make it importable when
# the project is not installed.
_CORE_SRC = Path(__file__).resolve().parent.parent / "packages" / "core" / "src"
if str(_CORE_SRC) not in sys.path:
    sys.path.insert(0, str(_CORE_SRC))

from database.schema import SCHEMA_SQL  # type: ignore


DIRECTORS = [
    ("Agnes Varda", "France"),
    ("Akira Kurosawa", "Japan"),
    ("Bong Joon-ho", "South Korea"),
    ("Greta Gerwig", "United States"),
    ("Jordan Peele", "United States"),
    ("Werner Herzog", "Germany"),
]

# (title, genre, release_year, director index, runtime in minutes)
MOVIES = [
    ("Cleo from 5 to 7", "drama", 1962, 0, 90),
    ("Faces Places", "documentary", 2017, 0, 89),
    ("Seven Samurai", "drama", 1954, 1, 207),
    ("Yojimbo", "drama", 1961, 1, 110),
    ("Parasite", "drama", 2019, 2, 132),
    ("Okja", "sci-fi", 2017, 2, 120),
    ("Lady Bird", "comedy", 2017, 3, 94),
    ("Frances Ha", "comedy", 2012, 3, 86),
    ("Get Out", "horror", 2017, 4, 104),
    ("Nope", "sci-fi", 2022, 4, 130),
    ("Grizzly Man", "documentary", 2005, 5, 103),
    ("Fitzcarraldo", "drama", 1982, 5, 158),
]


def parse_args():
    """Parse command-line arguments for the sample database generator."""
    parser = argparse.ArgumentParser(
        description="Generate a sample SQLite movie database for Read Gate.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data/sample.db"),
        help="Output path for the SQLite database file (default: data/sample.db)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible ratings (default: random)",
    )
    parser.add_argument(
        "--ratings",
        type=int,
        default=500,
        help="Number of rating rows to generate (default: 500)",
    )
    return parser.parse_args()


def populate(conn: sqlite3.Connection, rating_count: int) -> dict[str, int]:
    """Create the schema and insert sample rows; returns row counts per table."""
    conn.executescript(SCHEMA_SQL)

    conn.executemany(
        "INSERT INTO directors (id, name, country) VALUES (?, ?, ?)",
        [(i + 1, name, country) for i, (name, country) in enumerate(DIRECTORS)],
    )
    conn.executemany(
        "INSERT INTO movies (id, title, genre, release_year, director_id, runtime_minutes) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        [
            (i + 1, title, genre, year, director + 1, runtime)
            for i, (title, genre, year, director, runtime) in enumerate(MOVIES)
        ],
    )
    conn.executemany(
        "INSERT INTO ratings (movie_id, score) VALUES (?, ?)",
        [
            (random.randint(1, len(MOVIES)), random.randint(1, 10))
            for _ in range(rating_count)
        ],
    )
    conn.commit()

    return {
        "directors": len(DIRECTORS),
        "movies": len(MOVIES),
        "ratings": rating_count,
    }


def main():
    args = parse_args()
    if args.seed is not None:
        random.seed(args.seed)

    output_path: Path = args.output
    if output_path.exists():
        print(f"Error: {output_path} already exists", file=sys.stderr)
        sys.exit(1)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(output_path)
    try:
        counts = populate(conn, args.ratings)
    except sqlite3.Error as e:
        print(f"Error: Database operation failed - {e}", file=sys.stderr)
        conn.close()
        output_path.unlink(missing_ok=True)
        sys.exit(1)
    conn.close()

    print(f"Created {output_path}")
    for table, count in counts.items():
        print(f"  {table:<10} {count:>6} rows")
    print(f"\nTry: DB_PATH={output_path} read-gate query \"SELECT * FROM movies WHERE genre = 'comedy'\"")


if __name__ == "__main__":
    main()
