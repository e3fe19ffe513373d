import sqlite3
import os
import json
from contextlib import contextmanager
import logging

from feedback_portal import config
from feedback_portal.exceptions import StoreError

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

FEEDBACK_SESSION_KEY = 'activeFeedbackSession'


def get_db_path():
    """Get the database path and ensure the directory exists."""
    db_dir = os.path.dirname(DATABASE_PATH)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir)
    return DATABASE_PATH


@contextmanager
def get_db():
    """Context manager for database connections.

    Integrity violations are re-raised untouched so callers can map them to
    domain errors; any other sqlite failure becomes a StoreError.
    """
    conn = None
    try:
        conn = sqlite3.connect(get_db_path())
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        yield conn
        conn.commit()
    except sqlite3.IntegrityError:
        if conn:
            conn.rollback()
        raise
    except sqlite3.Error as e:
        if conn:
            conn.rollback()
        logger.error(f"Database error: {e}")
        raise StoreError(f"Database error: {e}") from e
    except Exception:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            conn.close()


def init_db():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        # Students table; feedback_given_* are legacy flags kept for older clients
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS students (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                gr_no TEXT NOT NULL UNIQUE,
                username TEXT NOT NULL UNIQUE,
                department TEXT NOT NULL,
                class TEXT NOT NULL,
                division TEXT NOT NULL,
                practical_batch TEXT NOT NULL,
                eligibility INTEGER NOT NULL DEFAULT 1,
                elective_chosen TEXT NOT NULL DEFAULT '',
                feedback_given_theory INTEGER NOT NULL DEFAULT 0,
                feedback_given_practical INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_students_section
            ON students(department, class, division)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS faculty (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                faculty_name TEXT NOT NULL,
                department TEXT NOT NULL,
                subject_name TEXT NOT NULL,
                class TEXT NOT NULL,
                division TEXT NOT NULL,
                is_elective INTEGER NOT NULL DEFAULT 0,
                is_practical_faculty INTEGER NOT NULL DEFAULT 0,
                practical_batches TEXT NOT NULL DEFAULT '[]',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_faculty_section
            ON faculty(department, class, division)
        ''')

        # One rating record per student per round
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS feedback (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                student_id INTEGER NOT NULL,
                department TEXT NOT NULL,
                class TEXT NOT NULL,
                division TEXT NOT NULL,
                feedback_round TEXT NOT NULL,
                library_ratings TEXT NOT NULL DEFAULT '{}',
                library_comments TEXT NOT NULL DEFAULT '',
                facilities_ratings TEXT NOT NULL DEFAULT '{}',
                facilities_comments TEXT NOT NULL DEFAULT '',
                submitted_at TIMESTAMP NOT NULL,
                UNIQUE(student_id, feedback_round)
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_feedback_scope
            ON feedback(department, class, division, feedback_round)
        ''')

        # Theory and practical blocks of a rating record
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS feedback_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                feedback_id INTEGER NOT NULL REFERENCES feedback(id) ON DELETE CASCADE,
                category TEXT NOT NULL,
                position INTEGER NOT NULL,
                faculty_id INTEGER,
                subject TEXT NOT NULL DEFAULT '',
                ratings TEXT NOT NULL DEFAULT '{}',
                comments TEXT NOT NULL DEFAULT ''
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_feedback_entries_faculty
            ON feedback_entries(faculty_id)
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_feedback_entries_feedback
            ON feedback_entries(feedback_id)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)
        ''', (FEEDBACK_SESSION_KEY, json.dumps({'isActive': False, 'activeRound': config.DEFAULT_ROUND})))

        conn.commit()
        logger.info("Database initialized successfully")
