"""
Study Streak Tracker Test Suite

Test Structure:
    tests/
    ├── conftest.py                    # Shared fixtures (SQLite database, catalog, clock)
    └── unit/
        ├── test_dates.py              # Study-day conversion
        ├── test_activity_log.py       # Recording, merging, listing, stats
        ├── test_streak_engine.py      # Streak rules, calendar, recompute
        ├── test_mastery_tracker.py    # Mastery levels, review intervals
        ├── test_achievements.py       # Achievement rules and awarding
        ├── test_revision_planner.py   # Revision plan and review overview
        ├── test_tracking_service.py   # Derived-state reconciliation
        ├── test_catalog_service.py    # Subjects and lessons
        ├── test_config.py             # Configuration loading
        └── test_study_api.py          # HTTP endpoints

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run one module
    pytest backend/tests/unit/test_streak_engine.py -v
"""
