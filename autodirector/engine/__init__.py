"""Engine - step model, action handlers, executor, run records."""
