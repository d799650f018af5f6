"""Enrollment corpus, eigenface training and recognition."""
