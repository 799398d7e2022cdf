"""Pytest configuration for all tests."""

import sys
import os

# Add the project root to the Python path so `src.copilot` imports resolve
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)
