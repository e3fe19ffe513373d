"""Project-wide exception types.

Every error carries the HTTP status the API layer answers with.
"""


class FeedbackError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'success': False, 'message': self.message}


class ValidationError(FeedbackError):
    """Missing or malformed filter/submission field."""

    status_code = 400

    def __init__(self, message: str, field: str = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field:
            data['field'] = self.field
        return data


class DuplicateSubmissionError(FeedbackError):
    """Raised when a student submits feedback twice for the same round."""

    status_code = 400


class InvalidFilterError(FeedbackError):
    """Inverted date range, unknown feedback type or grouping."""

    status_code = 400


class NotFoundError(FeedbackError):
    status_code = 404


class AccessScopeError(FeedbackError):
    """Raised when a principal reaches outside its department scope."""

    status_code = 403


class StoreError(FeedbackError):
    """Underlying persistence failure."""

    status_code = 500
