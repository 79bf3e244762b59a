"""Chat dice games: per-chat session state machine and outcome resolution."""
