"""Static metadata describing LiveQuiz."""

APP_NAME = "LiveQuiz"
APP_VERSION = "0.2"
