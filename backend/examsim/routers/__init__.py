from examsim.routers import exams, health, quota

__all__ = [
    "exams",
    "health",
    "quota",
]
