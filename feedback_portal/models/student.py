import sqlite3
import logging
from .database import get_db
from .records import StudentRef
from feedback_portal.utils import normalize_gr_no, clean_text, to_bool

logger = logging.getLogger(__name__)

STUDENT_COLUMNS = '''
    id, gr_no, username, department, class, division, practical_batch, eligibility
'''


def _row_to_ref(row):
    return StudentRef(
        id=row['id'],
        gr_no=row['gr_no'],
        username=row['username'],
        department=row['department'],
        class_name=row['class'],
        division=row['division'],
        practical_batch=row['practical_batch'],
        eligibility=bool(row['eligibility']),
    )


class Student:
    @staticmethod
    def add(gr_no, username, department, class_name, division, practical_batch,
            eligibility=True, elective_chosen=''):
        """Add a new student to the database. Returns the new id."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO students
                (gr_no, username, department, class, division, practical_batch,
                 eligibility, elective_chosen)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (normalize_gr_no(gr_no), clean_text(username), clean_text(department),
                  clean_text(class_name), clean_text(division), clean_text(practical_batch),
                  int(to_bool(eligibility, True)), clean_text(elective_chosen)))
            return cursor.lastrowid

    @staticmethod
    def bulk_add(students):
        """Add multiple students at once.
        students: list of dicts with grNo, username, department, class, division, practicalBatch
        Returns: (added_count, duplicate_count, duplicates_list)
        """
        added = []
        duplicates = []

        with get_db() as conn:
            cursor = conn.cursor()

            for student in students:
                gr_no = normalize_gr_no(student.get('grNo'))
                username = clean_text(student.get('username'))
                cursor.execute('''
                    SELECT 1 FROM students WHERE gr_no = ? OR username = ?
                ''', (gr_no, username))

                if cursor.fetchone():
                    duplicates.append(gr_no)
                    continue
                try:
                    cursor.execute('''
                        INSERT INTO students
                        (gr_no, username, department, class, division, practical_batch,
                         eligibility, elective_chosen)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ''', (gr_no, username,
                          clean_text(student.get('department')),
                          clean_text(student.get('class')),
                          clean_text(student.get('division')),
                          clean_text(student.get('practicalBatch')),
                          int(to_bool(student.get('eligibility'), True)),
                          clean_text(student.get('electiveChosen'))))
                    added.append(gr_no)
                except sqlite3.IntegrityError as e:
                    logger.error(f"Error adding student {gr_no}: {e}")
                    duplicates.append(gr_no)

        return len(added), len(duplicates), duplicates

    @staticmethod
    def delete(student_id):
        """Delete a student from the database."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM students WHERE id = ?', (student_id,))
            return cursor.rowcount > 0

    @staticmethod
    def get(student_id):
        """Get a student by id, or None."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {STUDENT_COLUMNS} FROM students WHERE id = ?', (student_id,))
            row = cursor.fetchone()
            return _row_to_ref(row) if row else None

    @staticmethod
    def get_by_gr_no(gr_no):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {STUDENT_COLUMNS} FROM students WHERE gr_no = ?',
                           (normalize_gr_no(gr_no),))
            row = cursor.fetchone()
            return _row_to_ref(row) if row else None

    @staticmethod
    def get_by_section(department, class_name=None, division=None, eligible_only=False):
        """Get all students of a department, optionally narrowed to class/division."""
        clauses = ['department = ?']
        params = [department]
        if class_name:
            clauses.append('class = ?')
            params.append(class_name)
        if division:
            clauses.append('division = ?')
            params.append(division)
        if eligible_only:
            clauses.append('eligibility = 1')

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'''
                SELECT {STUDENT_COLUMNS}
                FROM students
                WHERE {' AND '.join(clauses)}
                ORDER BY class, division, gr_no
            ''', params)

            return [_row_to_ref(row) for row in cursor.fetchall()]

    @staticmethod
    def set_feedback_flags(student_id, given, conn=None):
        """Set or clear the legacy feedbackGiven.theory/practical flags."""
        sql = '''
            UPDATE students
            SET feedback_given_theory = ?, feedback_given_practical = ?
            WHERE id = ?
        '''
        params = (int(given), int(given), student_id)
        if conn is not None:
            conn.execute(sql, params)
            return
        with get_db() as conn:
            conn.execute(sql, params)

    @staticmethod
    def count(department=None):
        """Get total number of students, optionally within one department."""
        with get_db() as conn:
            cursor = conn.cursor()
            if department:
                cursor.execute('SELECT COUNT(*) FROM students WHERE department = ?', (department,))
            else:
                cursor.execute('SELECT COUNT(*) FROM students')
            return cursor.fetchone()[0]
