"""Appointment booking API: availability, slots, round-robin assignment, booking lifecycle."""
