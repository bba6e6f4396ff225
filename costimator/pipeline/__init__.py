"""Takeoff → BOQ generation pipeline for Costimator.

Item-level failures are contained and reported; a run always returns the
BOQ lines it could build.
"""
