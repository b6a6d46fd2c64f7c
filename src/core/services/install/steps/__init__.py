"""
Step implementations — one module per pipeline stage.

Every step exposes ``execute(options, reporter, settings) -> StepResult``.
Steps are the only code that touches TIDAL's files or spawns processes,
and each one reports its own progress through the ``StepReporter``.
"""
