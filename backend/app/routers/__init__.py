from app.routers import attempts, contact, health, practice, quizzes, state, subjects

__all__ = [
    "attempts",
    "contact",
    "health",
    "practice",
    "quizzes",
    "state",
    "subjects",
]
