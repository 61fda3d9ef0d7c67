"""
Day-scoring and recommendation engine.

Modules
-------
streak    : consecutive_streak() — attended days immediately before a date.
scorer    : ScoreMode + ScoreComponents + compute_day_score() — the single
            scoring formula for both resolved and future days — plus the
            persisting day_score().
readiness : average_readiness_by_weekday(), predicted_score(),
            refresh_future_scores(), recompute_readiness_zscores().
allocator : select_recommended() (pure) + update_recommendations()
            (transactional clear-and-mark).
progress  : pace_urgency() + summarize_progress() — goal pacing.

Every operation takes an explicit ``sqlite3.Connection``; nothing is cached
between calls, so each call works from the current stored facts.
"""
