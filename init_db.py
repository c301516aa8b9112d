#!/usr/bin/env python3
"""
Create the Birdify tables in the PostgreSQL database named by DATABASE_URL
"""
import os
import sys

import psycopg2


def create_tables(conn):
    """Create the database schema"""
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS players (
                id SERIAL PRIMARY KEY,
                full_name VARCHAR(200) NOT NULL,
                email VARCHAR(200) UNIQUE,
                gender VARCHAR(20),
                handicap_index NUMERIC(4, 1)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS courses (
                id SERIAL PRIMARY KEY,
                name VARCHAR(200) NOT NULL,
                location VARCHAR(200)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS holes (
                id SERIAL PRIMARY KEY,
                course_id INTEGER NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
                hole_number INTEGER NOT NULL CHECK (hole_number BETWEEN 1 AND 18),
                par INTEGER NOT NULL CHECK (par BETWEEN 3 AND 5),
                stroke_index INTEGER CHECK (stroke_index BETWEEN 1 AND 18),
                UNIQUE(course_id, hole_number)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS tees (
                id SERIAL PRIMARY KEY,
                hole_id INTEGER NOT NULL REFERENCES holes(id) ON DELETE CASCADE,
                color VARCHAR(40) NOT NULL,
                yardage INTEGER NOT NULL CHECK (yardage > 0)
            )
        """)

        # Courses referenced by a tournament cannot be deleted (RESTRICT)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS tournaments (
                id SERIAL PRIMARY KEY,
                name VARCHAR(200) NOT NULL,
                date DATE NOT NULL,
                course_id INTEGER NOT NULL REFERENCES courses(id) ON DELETE RESTRICT,
                status VARCHAR(20) NOT NULL DEFAULT 'scheduled'
                    CHECK (status IN ('scheduled', 'in_progress', 'completed')),
                categories TEXT[] NOT NULL DEFAULT '{}'
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS trainings (
                id SERIAL PRIMARY KEY,
                name VARCHAR(200),
                date DATE NOT NULL,
                course_id INTEGER NOT NULL REFERENCES courses(id) ON DELETE RESTRICT
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS play_groups (
                id SERIAL PRIMARY KEY,
                tournament_id INTEGER REFERENCES tournaments(id) ON DELETE CASCADE,
                training_id INTEGER REFERENCES trainings(id) ON DELETE CASCADE,
                start_hole INTEGER NOT NULL CHECK (start_hole BETWEEN 1 AND 18),
                access_code VARCHAR(20) UNIQUE NOT NULL,
                category VARCHAR(100),
                status VARCHAR(20) NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'completed', 'editing')),
                CHECK ((tournament_id IS NULL) <> (training_id IS NULL))
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS group_players (
                group_id INTEGER NOT NULL REFERENCES play_groups(id) ON DELETE CASCADE,
                player_id INTEGER NOT NULL REFERENCES players(id) ON DELETE CASCADE,
                position INTEGER NOT NULL DEFAULT 0,
                course_handicap INTEGER CHECK (course_handicap >= 0),
                tee_color VARCHAR(40),
                is_responsible BOOLEAN NOT NULL DEFAULT FALSE,
                PRIMARY KEY (group_id, player_id)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS scores (
                group_id INTEGER NOT NULL,
                player_id INTEGER NOT NULL,
                hole_number INTEGER NOT NULL CHECK (hole_number BETWEEN 1 AND 18),
                strokes INTEGER NOT NULL CHECK (strokes > 0),
                PRIMARY KEY (group_id, player_id, hole_number),
                FOREIGN KEY (group_id, player_id)
                    REFERENCES group_players(group_id, player_id) ON DELETE CASCADE
            )
        """)

        cur.execute("CREATE INDEX IF NOT EXISTS idx_play_groups_tournament ON play_groups(tournament_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_group_players_player ON group_players(player_id)")

        conn.commit()
        print("Database schema created successfully")


def main():
    database_url = os.environ.get('DATABASE_URL')
    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        return 1

    conn = psycopg2.connect(database_url)
    try:
        print("Connected to PostgreSQL database")
        create_tables(conn)
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
