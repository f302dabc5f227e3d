"""Quiz-related constants shared across core services and the server."""

SCORING_STRATEGY: str = "most_correct_then_fastest"
QUIZ_CODE_LENGTH: int = 6
QUIZ_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
MIN_TIME_LIMIT_SECONDS: int = 5
MAX_TIME_LIMIT_SECONDS: int = 300
MIN_OPTIONS_PER_QUESTION: int = 2
DEFAULT_QUESTION_POINTS: int = 1
MAX_PARTICIPANT_NAME_LENGTH: int = 50

TABLE_QUIZZES: str = "quizzes"
TABLE_QUESTIONS: str = "questions"
TABLE_ATTEMPTS: str = "attempts"
TABLE_ANSWERS: str = "answers"
