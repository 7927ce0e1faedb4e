"""exambank - compose, grade and log exams from categorized question pools."""

__version__ = "0.1.0"
