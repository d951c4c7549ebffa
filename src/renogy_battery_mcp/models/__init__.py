"""Data models for decoded battery readings."""

from .readings import Measurement, SectionReading
