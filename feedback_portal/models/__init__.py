from .database import init_db, get_db, get_db_path
from .student import Student
from .faculty import Faculty
from .feedback import FeedbackStore
from .config_store import ConfigStore, FeedbackSession

__all__ = ['init_db', 'get_db', 'get_db_path', 'Student', 'Faculty',
           'FeedbackStore', 'ConfigStore', 'FeedbackSession']
