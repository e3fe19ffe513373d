"""
Service for handling Excel file uploads for student registration.
"""

import pandas as pd
import logging
from typing import Tuple
from feedback_portal.models.student import Student

logger = logging.getLogger(__name__)

# Required headers for student Excel file
REQUIRED_HEADERS = ['grno', 'username', 'department', 'class', 'division', 'practicalbatch']


def validate_excel_file(file_path: str) -> Tuple[bool, str, pd.DataFrame]:
    """
    Validate the uploaded Excel file.

    Returns:
        Tuple of (is_valid, error_message, dataframe)
    """
    try:
        df = pd.read_excel(file_path)

        if df.empty:
            return False, "Excel file is empty", None

        # Headers are matched case-insensitively
        df.columns = df.columns.astype(str).str.strip().str.lower()

        missing_headers = [h for h in REQUIRED_HEADERS if h not in df.columns]
        if missing_headers:
            return False, f"Missing required columns: {', '.join(missing_headers)}. Required: {', '.join(REQUIRED_HEADERS)}", None

        if df[REQUIRED_HEADERS].isnull().any().any():
            return False, "Excel file contains empty values in required columns", None

        for column in REQUIRED_HEADERS:
            df[column] = df[column].astype(str).str.strip()
        df['grno'] = df['grno'].str.upper()

        df = df[df['grno'] != '']

        if df.empty:
            return False, "No valid student records found after cleaning", None

        return True, "", df

    except (ValueError, OSError, ImportError) as e:
        logger.error(f"Error validating Excel file: {e}")
        return False, f"Error reading Excel file: {str(e)}", None


def process_student_excel(file_path: str) -> Tuple[bool, str, dict]:
    """
    Process the uploaded Excel file and add students to database.

    Returns:
        Tuple of (success, message, stats_dict)
    """
    is_valid, error_msg, df = validate_excel_file(file_path)
    if not is_valid:
        return False, error_msg, {}

    students_data = []
    for _, row in df.iterrows():
        students_data.append({
            'grNo': row['grno'],
            'username': row['username'],
            'department': row['department'],
            'class': row['class'],
            'division': row['division'],
            'practicalBatch': row['practicalbatch'],
            'eligibility': row['eligibility'] if 'eligibility' in df.columns and pd.notna(row['eligibility']) else True,
        })

    added_count, duplicate_count, duplicates = Student.bulk_add(students_data)

    stats = {
        'total': len(students_data),
        'added': added_count,
        'duplicates': duplicate_count,
        'duplicate_list': duplicates[:20]  # Limit to first 20 for display
    }

    if added_count > 0:
        message = f"Successfully added {added_count} students. "
        if duplicate_count > 0:
            message += f"{duplicate_count} duplicates were skipped."
        return True, message.strip(), stats
    else:
        return False, f"No new students added. All {duplicate_count} records were duplicates.", stats


def create_sample_excel(output_path: str = 'sample_students.xlsx'):
    """
    Create a sample Excel file with the correct format.
    """
    sample_data = {
        'grNo': ['GR1001', 'GR1002', 'GR1003'],
        'username': ['aarav.s', 'diya.k', 'kabir.m'],
        'department': ['AIML', 'AIML', 'AIML'],
        'class': ['SE', 'SE', 'SE'],
        'division': ['A', 'A', 'B'],
        'practicalBatch': ['A1', 'A2', 'B1'],
    }

    df = pd.DataFrame(sample_data)
    df.to_excel(output_path, index=False)
    logger.info(f"Sample Excel file created: {output_path}")
    return output_path
