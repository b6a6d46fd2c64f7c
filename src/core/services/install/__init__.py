"""
Luna install pipeline.

    paths.py               target resolver (where TIDAL lives)
    messages.py            progress events on the event bus
    subprocess_runner.py   process spawning for the kill and sign steps
    steps/                 one module per pipeline stage
    registry.py            Step → implementation dispatch table
    manager.py             InstallManager — plans and runs the steps
"""
