"""
Schema DDL for the sample movie database.

Defines the tables used by ``scripts/create_sample_db.py`` and by the test
suite to exercise the read-only gate against a real SQLite file.

Tables:
    directors  - People who direct movies
    movies     - Titles with genre and release year
    ratings    - Individual audience ratings per movie
"""

# Complete schema DDL as a single SQL script.
SCHEMA_SQL = """
CREATE TABLE directors (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    country TEXT
);

CREATE TABLE movies (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    genre TEXT NOT NULL,     -- comedy, drama, horror, sci-fi, documentary
    release_year INTEGER,
    director_id INTEGER,
    runtime_minutes INTEGER,
    FOREIGN KEY (director_id) REFERENCES directors(id)
);

CREATE INDEX idx_movies_genre ON movies(genre);

CREATE TABLE ratings (
    id INTEGER PRIMARY KEY,
    movie_id INTEGER NOT NULL,
    score INTEGER CHECK(score BETWEEN 1 AND 10),
    rated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (movie_id) REFERENCES movies(id)
);

CREATE INDEX idx_ratings_movie ON ratings(movie_id);
"""
