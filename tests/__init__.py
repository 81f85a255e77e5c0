"""Test package for the Reaction Trainer.

Core tests drive the session engine with a fake clock and a recording
presentation, so timing is fully deterministic. UI tests run headlessly
using pygame's dummy video/audio drivers. Run ``pytest`` from the project
root.
"""
