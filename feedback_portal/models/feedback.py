import json
import sqlite3
import logging
from datetime import datetime

from .database import get_db
from .records import FacultyRef, RatingBlock, RatingEntry, RatingRecord, StudentRef
from .student import Student
from feedback_portal.config import THEORY, PRACTICAL, NO_BATCH
from feedback_portal.exceptions import DuplicateSubmissionError
from feedback_portal.utils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

RECORD_SELECT = '''
    SELECT f.id, f.student_id, f.department, f.class, f.division, f.feedback_round,
           f.library_ratings, f.library_comments, f.facilities_ratings,
           f.facilities_comments, f.submitted_at,
           s.id AS s_id, s.gr_no, s.username, s.department AS s_department,
           s.class AS s_class, s.division AS s_division, s.practical_batch, s.eligibility
    FROM feedback f
    LEFT JOIN students s ON s.id = f.student_id
'''

ENTRY_SELECT = '''
    SELECT e.feedback_id, e.category, e.position, e.faculty_id, e.subject,
           e.ratings, e.comments,
           fa.id AS fa_id, fa.faculty_name, fa.department AS fa_department,
           fa.subject_name, fa.class AS fa_class, fa.division AS fa_division,
           fa.is_elective, fa.is_practical_faculty, fa.practical_batches
    FROM feedback_entries e
    JOIN feedback f ON f.id = e.feedback_id
    LEFT JOIN faculty fa ON fa.id = e.faculty_id
'''


def _ratings(raw):
    return {key: int(value) for key, value in json.loads(raw or '{}').items()}


def _student_from_join(row):
    if row['s_id'] is None:
        return None
    return StudentRef(
        id=row['s_id'],
        gr_no=row['gr_no'],
        username=row['username'],
        department=row['s_department'],
        class_name=row['s_class'],
        division=row['s_division'],
        practical_batch=row['practical_batch'] or NO_BATCH,
        eligibility=bool(row['eligibility']),
    )


def _faculty_from_join(row):
    if row['fa_id'] is None:
        return None
    return FacultyRef(
        id=row['fa_id'],
        name=row['faculty_name'],
        subject_name=row['subject_name'],
        department=row['fa_department'],
        class_name=row['fa_class'],
        division=row['fa_division'],
        is_practical_faculty=bool(row['is_practical_faculty']),
        is_elective=bool(row['is_elective']),
        practical_batches=frozenset(json.loads(row['practical_batches'] or '[]')),
    )


class FeedbackStore:
    """Persistence for rating records.

    Reads are set based: one query for the records with their students and
    one for all of their theory/practical entries with faculty resolved.
    """

    def insert(self, record):
        """Persist *record*; a second record for the same student and round fails."""
        submitted_at = record.submitted_at or datetime.now().replace(microsecond=0)
        try:
            with get_db() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    INSERT INTO feedback
                    (student_id, department, class, division, feedback_round,
                     library_ratings, library_comments, facilities_ratings,
                     facilities_comments, submitted_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (record.student_id, record.department, record.class_name,
                      record.division, record.feedback_round,
                      json.dumps(record.library.ratings), record.library.comments,
                      json.dumps(record.facilities.ratings), record.facilities.comments,
                      format_timestamp(submitted_at)))
                feedback_id = cursor.lastrowid

                entry_rows = []
                for category, entries in ((THEORY, record.theory_entries),
                                          (PRACTICAL, record.practical_entries)):
                    for position, entry in enumerate(entries):
                        entry_rows.append((feedback_id, category, position, entry.faculty_id,
                                           entry.subject_name, json.dumps(entry.ratings),
                                           entry.comments))
                cursor.executemany('''
                    INSERT INTO feedback_entries
                    (feedback_id, category, position, faculty_id, subject, ratings, comments)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', entry_rows)

                Student.set_feedback_flags(record.student_id, True, conn=conn)
        except sqlite3.IntegrityError as e:
            if 'UNIQUE' not in str(e):
                raise
            raise DuplicateSubmissionError(
                f"Feedback already submitted for round {record.feedback_round}."
            ) from e

        record.id = feedback_id
        record.submitted_at = submitted_at
        logger.info(f"Stored feedback {feedback_id} for student {record.student_id} "
                    f"(round {record.feedback_round})")
        return record

    def exists(self, student_id, feedback_round=None):
        with get_db() as conn:
            cursor = conn.cursor()
            if feedback_round is None:
                cursor.execute('SELECT 1 FROM feedback WHERE student_id = ?', (student_id,))
            else:
                cursor.execute('''
                    SELECT 1 FROM feedback WHERE student_id = ? AND feedback_round = ?
                ''', (student_id, feedback_round))
            return cursor.fetchone() is not None

    def find(self, predicate):
        """Return every record matching *predicate*, oldest first."""
        where, params = predicate.to_sql('f')
        return self._load(where, params, 'f.id')

    def find_by_faculty(self, faculty_id, feedback_round=None):
        """Records with a theory or practical entry for *faculty_id*, newest first."""
        where = 'f.id IN (SELECT feedback_id FROM feedback_entries WHERE faculty_id = ?)'
        params = [faculty_id]
        if feedback_round is not None:
            where += ' AND f.feedback_round = ?'
            params.append(feedback_round)
        return self._load(where, params, 'f.submitted_at DESC, f.id DESC')

    def delete_for_student(self, student_id, feedback_round=None):
        """Delete a student's record(s) and clear the legacy flags. Returns rows deleted."""
        with get_db() as conn:
            cursor = conn.cursor()
            if feedback_round is None:
                cursor.execute('DELETE FROM feedback WHERE student_id = ?', (student_id,))
            else:
                cursor.execute('''
                    DELETE FROM feedback WHERE student_id = ? AND feedback_round = ?
                ''', (student_id, feedback_round))
            deleted = cursor.rowcount
            if deleted:
                Student.set_feedback_flags(student_id, False, conn=conn)
        logger.info(f"Deleted {deleted} feedback record(s) for student {student_id}")
        return deleted

    def submitted_student_ids(self, feedback_round=None):
        with get_db() as conn:
            cursor = conn.cursor()
            if feedback_round is None:
                cursor.execute('SELECT DISTINCT student_id FROM feedback')
            else:
                cursor.execute('SELECT DISTINCT student_id FROM feedback WHERE feedback_round = ?',
                               (feedback_round,))
            return {row[0] for row in cursor.fetchall()}

    def _load(self, where, params, order_by):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'{RECORD_SELECT} WHERE {where} ORDER BY {order_by}', params)
            records = {}
            for row in cursor.fetchall():
                records[row['id']] = RatingRecord(
                    id=row['id'],
                    student_id=row['student_id'],
                    department=row['department'],
                    class_name=row['class'],
                    division=row['division'],
                    feedback_round=row['feedback_round'],
                    submitted_at=parse_timestamp(row['submitted_at']),
                    library=RatingBlock(_ratings(row['library_ratings']), row['library_comments']),
                    facilities=RatingBlock(_ratings(row['facilities_ratings']),
                                           row['facilities_comments']),
                    student=_student_from_join(row),
                )

            if not records:
                return []

            cursor.execute(f'''
                {ENTRY_SELECT} WHERE {where}
                ORDER BY e.feedback_id, e.category, e.position
            ''', params)
            for row in cursor.fetchall():
                record = records.get(row['feedback_id'])
                if record is None:
                    continue
                entry = RatingEntry(
                    faculty_id=row['faculty_id'],
                    subject_name=row['subject'],
                    ratings=_ratings(row['ratings']),
                    comments=row['comments'],
                    faculty=_faculty_from_join(row),
                )
                if row['category'] == THEORY:
                    record.theory_entries.append(entry)
                else:
                    record.practical_entries.append(entry)

        return list(records.values())
