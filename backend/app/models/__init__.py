from app.models.subject import Category, Subject
from app.models.quiz import Choice, Question, Quiz, QuizQuestion
from app.models.attempt import QuizAttempt
from app.models.contact import ContactRequest

__all__ = [
    "Subject",
    "Category",
    "Quiz",
    "Question",
    "QuizQuestion",
    "Choice",
    "QuizAttempt",
    "ContactRequest",
]
