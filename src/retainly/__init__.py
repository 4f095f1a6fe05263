"""retainly: FSRS spaced-repetition scheduling."""
