import json
import logging
from .database import get_db
from .records import FacultyRef
from feedback_portal.utils import clean_text, to_bool

logger = logging.getLogger(__name__)

FACULTY_COLUMNS = '''
    id, faculty_name, department, subject_name, class, division,
    is_elective, is_practical_faculty, practical_batches
'''


def row_to_faculty(row):
    return FacultyRef(
        id=row['id'],
        name=row['faculty_name'],
        subject_name=row['subject_name'],
        department=row['department'],
        class_name=row['class'],
        division=row['division'],
        is_practical_faculty=bool(row['is_practical_faculty']),
        is_elective=bool(row['is_elective']),
        practical_batches=frozenset(json.loads(row['practical_batches'] or '[]')),
    )


def _batches(is_practical, practical_batches):
    # Batches only mean something for practical faculty
    if not is_practical or not practical_batches:
        return '[]'
    if isinstance(practical_batches, str):
        practical_batches = practical_batches.split(',')
    return json.dumps(sorted({clean_text(b) for b in practical_batches if clean_text(b)}))


class Faculty:
    @staticmethod
    def add(faculty_name, department, subject_name, class_name, division,
            is_elective=False, is_practical_faculty=False, practical_batches=None):
        """Register one faculty teaching assignment. Returns the new id."""
        is_practical = to_bool(is_practical_faculty)
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO faculty
                (faculty_name, department, subject_name, class, division,
                 is_elective, is_practical_faculty, practical_batches)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (clean_text(faculty_name), clean_text(department), clean_text(subject_name),
                  clean_text(class_name), clean_text(division), int(to_bool(is_elective)),
                  int(is_practical), _batches(is_practical, practical_batches)))
            return cursor.lastrowid

    @staticmethod
    def bulk_add(faculty_rows):
        """
        Bulk add faculty.

        Returns:
            Tuple of (added_count, duplicate_count)
        """
        added_count = 0
        duplicate_count = 0

        with get_db() as conn:
            cursor = conn.cursor()

            for row in faculty_rows:
                key = (clean_text(row.get('facultyName')), clean_text(row.get('department')),
                       clean_text(row.get('subjectName')), clean_text(row.get('class')),
                       clean_text(row.get('division')))
                if not all(key):
                    continue

                cursor.execute('''
                    SELECT 1 FROM faculty
                    WHERE faculty_name = ? AND department = ? AND subject_name = ?
                      AND class = ? AND division = ?
                ''', key)
                if cursor.fetchone():
                    duplicate_count += 1
                    continue

                is_practical = to_bool(row.get('isPracticalFaculty'))
                cursor.execute('''
                    INSERT INTO faculty
                    (faculty_name, department, subject_name, class, division,
                     is_elective, is_practical_faculty, practical_batches)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', key + (int(to_bool(row.get('isElective'))), int(is_practical),
                            _batches(is_practical, row.get('practicalBatches'))))
                added_count += 1

        return added_count, duplicate_count

    @staticmethod
    def get(faculty_id):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {FACULTY_COLUMNS} FROM faculty WHERE id = ?', (faculty_id,))
            row = cursor.fetchone()
            return row_to_faculty(row) if row else None

    @staticmethod
    def get_many(faculty_ids):
        """Resolve a set of ids in one query. Returns {id: FacultyRef}."""
        ids = sorted({int(i) for i in faculty_ids if i is not None})
        if not ids:
            return {}
        placeholders = ', '.join(['?'] * len(ids))
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {FACULTY_COLUMNS} FROM faculty WHERE id IN ({placeholders})', ids)
            return {row['id']: row_to_faculty(row) for row in cursor.fetchall()}

    @staticmethod
    def get_by_section(department, class_name, division, is_practical=None):
        """Faculty teaching a department/class/division, optionally theory- or practical-only."""
        sql = f'''
            SELECT {FACULTY_COLUMNS} FROM faculty
            WHERE department = ? AND class = ? AND division = ?
        '''
        params = [department, class_name, division]
        if is_practical is not None:
            sql += ' AND is_practical_faculty = ?'
            params.append(int(is_practical))
        sql += ' ORDER BY faculty_name, subject_name'

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return [row_to_faculty(row) for row in cursor.fetchall()]

    @staticmethod
    def delete(faculty_id):
        """Delete a faculty record. Existing rating entries keep the dangling id."""
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM faculty WHERE id = ?', (faculty_id,))
            return cursor.rowcount > 0

    @staticmethod
    def count(department=None):
        with get_db() as conn:
            cursor = conn.cursor()
            if department:
                cursor.execute('SELECT COUNT(*) FROM faculty WHERE department = ?', (department,))
            else:
                cursor.execute('SELECT COUNT(*) FROM faculty')
            return cursor.fetchone()[0]
