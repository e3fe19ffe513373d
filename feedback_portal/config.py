import os

# Database configuration
DATABASE_PATH = os.environ.get(
    'FEEDBACK_DB_PATH',
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data', 'feedback.db')
)

# Upload configuration
UPLOAD_FOLDER = os.environ.get('FEEDBACK_UPLOAD_FOLDER', 'uploads')
ALLOWED_EXTENSIONS = {'xlsx', 'xls'}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

SECRET_KEY = os.environ.get('FEEDBACK_SECRET_KEY', 'change_me_in_production')
SERVER_PORT = int(os.environ.get('FEEDBACK_PORT', '5000'))

# Sentinel meaning "no restriction" for department/class/division/round filters
ALL = 'All'

FEEDBACK_ROUNDS = ('1', '2')
DEFAULT_ROUND = '1'

# Feedback categories
THEORY = 'theory'
PRACTICAL = 'practical'
LIBRARY = 'library'
OTHER_FACILITIES = 'other_facilities'
FEEDBACK_TYPES = (THEORY, PRACTICAL, LIBRARY, OTHER_FACILITIES)

GROUP_BY_DIVISION = 'division'
GROUP_BY_CLASS = 'class'
GROUP_BY_FACULTY = 'faculty'
GROUP_BY_OPTIONS = (GROUP_BY_DIVISION, GROUP_BY_CLASS, GROUP_BY_FACULTY)

MIN_RATING = 1
MAX_RATING = 5

# No batch for theory and section blocks
NO_BATCH = '-'

LIBRARY_UNIT_NAME = 'Library'
FACILITIES_UNIT_NAME = 'Other Facilities'

# Feedback questions, keyed q1..qN in submissions
FEEDBACK_QUESTIONS = {
    THEORY: [
        "Rate the communication and teaching skill of the teacher",
        "Rate the teacher was organized, well prepared and used class time efficiently",
        "Rate the teachers who encourage you to ask the questions/doubts in the class",
        "Rate the class is interesting and lively",
        "Rate the teachers impartiality and helps students irrespective of culture/background",
    ],
    PRACTICAL: [
        "Did the faculty explain and illustrate Practical concepts/tutorial effectively and cleared your doubts time to time?",
        "Did faculty motivate you to ask questions and attempt Quiz/Oral Question-Answer sessions on experiments/tutorials?",
        "Did the practical/Tutorial sessions increase your ability to identify, formulate and solve problems?",
        "Does the faculty insist in keeping the observation note books?",
        "Was the demonstration for Practical/Tutorial organized, clear and easy to follow?",
    ],
    LIBRARY: [
        "Availability of books set / issue",
        "Adequate seating arrangement",
        "Digital library/National internal journal",
        "Other reading facility",
    ],
    OTHER_FACILITIES: [
        "Conveyance",
        "Girls/Boys Room",
        "Lift Facilities",
        "Classrooms",
        "Gymkhana",
        "Student Activities",
        "Canteen",
        "Drinking Water",
        "Account section",
        "Student Section",
        "Internet Facilities",
        "Exam Section",
    ],
}


def question_keys(feedback_type):
    """Return the allowed rating keys (q1..qN) for a feedback category."""
    return [f"q{i}" for i in range(1, len(FEEDBACK_QUESTIONS[feedback_type]) + 1)]


# Printed report headers
INSTITUTION_NAME = os.environ.get('FEEDBACK_INSTITUTION_NAME', 'COLLEGE OF ENGINEERING')
REPORT_FOOTER = os.environ.get('FEEDBACK_REPORT_FOOTER', 'Student Feedback System')
