"""
Service for handling Excel file uploads of faculty teaching assignments.
"""

import pandas as pd
import logging
from typing import Tuple
from feedback_portal.models.faculty import Faculty

logger = logging.getLogger(__name__)

# Required headers for faculty Excel file
FACULTY_REQUIRED_HEADERS = ['facultyname', 'department', 'subjectname', 'class', 'division']
OPTIONAL_HEADERS = ['ispracticalfaculty', 'iselective', 'practicalbatches']


def validate_faculty_excel(file_path: str) -> Tuple[bool, str, pd.DataFrame]:
    """
    Validate the uploaded faculty Excel file.

    Returns:
        Tuple of (is_valid, error_message, dataframe)
    """
    try:
        df = pd.read_excel(file_path)

        if df.empty:
            return False, "Excel file is empty", None

        df.columns = df.columns.astype(str).str.strip().str.lower()

        missing_headers = [h for h in FACULTY_REQUIRED_HEADERS if h not in df.columns]
        if missing_headers:
            return False, f"Missing required columns: {', '.join(missing_headers)}. Required: {', '.join(FACULTY_REQUIRED_HEADERS)}", None

        if df[FACULTY_REQUIRED_HEADERS].isnull().any().any():
            return False, "Excel file contains empty values in required columns", None

        for column in FACULTY_REQUIRED_HEADERS:
            df[column] = df[column].astype(str).str.strip()
        for column in OPTIONAL_HEADERS:
            if column not in df.columns:
                df[column] = ''
        df[OPTIONAL_HEADERS] = df[OPTIONAL_HEADERS].fillna('')

        mask = (df[FACULTY_REQUIRED_HEADERS] != '').all(axis=1)
        df = df[mask]

        if df.empty:
            return False, "No valid faculty records found after cleaning", None

        return True, "", df

    except (ValueError, OSError, ImportError) as e:
        logger.error(f"Error validating faculty Excel file: {e}")
        return False, f"Error reading Excel file: {str(e)}", None


def process_faculty_excel(file_path: str, principal=None) -> Tuple[bool, str, dict]:
    """
    Process the uploaded Excel file and register faculty.

    Rows for departments outside the principal's scope are skipped.

    Returns:
        Tuple of (success, message, stats_dict)
    """
    is_valid, error_msg, df = validate_faculty_excel(file_path)
    if not is_valid:
        return False, error_msg, {}

    faculty_rows = []
    out_of_scope = 0
    for _, row in df.iterrows():
        if principal is not None and not principal.can_access(row['department']):
            out_of_scope += 1
            continue
        faculty_rows.append({
            'facultyName': row['facultyname'],
            'department': row['department'],
            'subjectName': row['subjectname'],
            'class': row['class'],
            'division': row['division'],
            'isPracticalFaculty': row['ispracticalfaculty'],
            'isElective': row['iselective'],
            'practicalBatches': str(row['practicalbatches']),
        })

    added_count, duplicate_count = Faculty.bulk_add(faculty_rows)

    stats = {
        'total': len(df),
        'added': added_count,
        'skipped': duplicate_count,
        'out_of_scope': out_of_scope,
    }

    if added_count > 0:
        message = f"Successfully added {added_count} faculty. "
        if duplicate_count > 0:
            message += f"{duplicate_count} duplicates were skipped."
        return True, message.strip(), stats
    else:
        return False, f"No new faculty added. {duplicate_count} duplicates, {out_of_scope} outside your department.", stats


def create_sample_faculty_excel(output_path: str = 'sample_faculty.xlsx'):
    """
    Create a sample Excel file with the correct format for faculty.
    """
    sample_data = {
        'facultyName': ['Dr. Meera Rao', 'Prof. Nikhil Desai', 'Prof. Nikhil Desai'],
        'department': ['AIML', 'AIML', 'AIML'],
        'subjectName': ['Data Structures', 'Operating Systems', 'OS Lab'],
        'class': ['SE', 'SE', 'SE'],
        'division': ['A', 'A', 'A'],
        'isPracticalFaculty': [False, False, True],
        'isElective': [False, False, False],
        'practicalBatches': ['', '', 'A1,A2'],
    }

    df = pd.DataFrame(sample_data)
    df.to_excel(output_path, index=False)
    logger.info(f"Sample faculty Excel file created: {output_path}")
    return output_path
