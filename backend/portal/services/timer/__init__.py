"""Batch timer domain services.

Working-hours arithmetic and the countdown state machine are pure and
clock-free; `transitions` wraps them in a locked database write and
`clock_sync` holds the viewer-side offset correction and ticker.
"""
