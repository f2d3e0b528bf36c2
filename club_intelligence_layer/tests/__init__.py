"""Test package for the Club Intelligence Layer."""
