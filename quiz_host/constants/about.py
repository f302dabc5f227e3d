"""Static metadata describing SwiftQuiz."""

APP_NAME = "SwiftQuiz"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "SwiftQuiz hosts multiple-choice quizzes in the browser. "
    "Share a link or a 6-character code, let participants answer one question at a time, "
    "and rank them by most correct answers, then fastest time."
)
