"""
Backend VoteGuard — camera-based session risk monitor for remote voting.

Samples webcam stills during a voting session, asks a vision model for a
structured observation, scores it against fixed rules and keeps a cumulative
session risk that is attached to the cast vote as advisory metadata. Modular
architecture: sampler, classifier, analysis engine, scheduler, API server and
agent worker.
"""

__version__ = "0.1.0"
