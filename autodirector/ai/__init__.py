"""AI layer - heuristic planner and the Claude planner oracle."""
