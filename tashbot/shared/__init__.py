"""Storage layer shared by the Tashbot runtime: pool, models and repositories."""
