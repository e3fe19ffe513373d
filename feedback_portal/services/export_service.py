"""
Service for writing exported feedback rows to CSV or Excel.
"""

import os
import logging
from typing import List

import pandas as pd

from feedback_portal.exceptions import ValidationError

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['studentGrNo', 'studentUsername', 'facultyName', 'subject', 'department',
                  'class', 'division', 'feedbackType', 'comments', 'submittedAt']

EXPORT_FORMATS = ('csv', 'xlsx')


def _question_order(key):
    digits = ''.join(filter(str.isdigit, key))
    return (int(digits) if digits else 0, key)


def export_dataframe(rows: List[dict]) -> pd.DataFrame:
    """
    Flatten export rows into a DataFrame with one column per question key.

    Question columns are named Q1..Qn and sorted numerically.
    """
    question_keys = sorted({k for row in rows for k in (row.get('ratings') or {})}, key=_question_order)

    records = []
    for row in rows:
        flat = {column: row.get(column) for column in EXPORT_COLUMNS}
        ratings = row.get('ratings') or {}
        for key in question_keys:
            flat[key.upper()] = ratings.get(key)
        records.append(flat)

    columns = EXPORT_COLUMNS + [k.upper() for k in question_keys]
    return pd.DataFrame(records, columns=columns)


def write_export(rows: List[dict], output_path: str, fmt: str = 'csv') -> str:
    """Write *rows* to *output_path* as CSV or XLSX and return the path."""
    fmt = (fmt or 'csv').lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format '{fmt}'", field='format')

    df = export_dataframe(rows)
    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    if fmt == 'csv':
        df.to_csv(output_path, index=False)
    else:
        df.to_excel(output_path, index=False)
    logger.info(f"Exported {len(df)} feedback rows to {output_path}")
    return output_path
