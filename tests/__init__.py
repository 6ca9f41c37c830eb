"""Test package for the PVT vigilance engine.

Core tests drive the session with a ``FakeClock`` so every timer fires
deterministically. The pygame smoke tests use SDL's dummy video and audio
drivers to avoid opening real windows. Run ``pytest`` from the project root.
"""
