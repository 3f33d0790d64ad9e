"""Datasets bundled with the RAFT relationship graph."""

import os

DEFAULT_DATASET = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'relationships_default.csv')
