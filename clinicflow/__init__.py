"""Front-desk patient flow tracking for walk-in clinics."""
