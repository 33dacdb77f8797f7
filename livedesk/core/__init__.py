"""Domain layer: exceptions and the live session state machine."""
